"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 4 sample customers
  - 6 sample drivers (online, spread around downtown San Francisco)
  - 5 sample rides (mix of requested, accepted, in_progress, completed)
"""

import asyncio

from nextride.config import settings
from nextride.domain.dispatch import location_cell
from nextride.domain.entities import Location
from nextride.domain.enums import RideStatus, UserRole, VehicleClass
from nextride.infrastructure.database import async_session_factory, engine
from nextride.infrastructure.events import InMemoryEventBus
from nextride.infrastructure.models import UserModel
from nextride.services.rides import RideLifecycleManager

# Union Square, San Francisco (approx)
CITY_LAT, CITY_LNG = 37.7880, -122.4075


CUSTOMERS = [
    {"id": "cust-ava", "first": "Ava", "last": "Chen", "email": "ava@example.com"},
    {"id": "cust-liam", "first": "Liam", "last": "Garcia", "email": "liam@example.com"},
    {"id": "cust-maya", "first": "Maya", "last": "Patel", "email": "maya@example.com"},
    {"id": "cust-noah", "first": "Noah", "last": "Kim", "email": "noah@example.com"},
]

DRIVERS = [
    {"id": "drv-sam", "first": "Sam", "last": "Rivera", "cls": VehicleClass.SEDAN, "lat": 37.7890, "lng": -122.4080},
    {"id": "drv-jo", "first": "Jo", "last": "Okafor", "cls": VehicleClass.SEDAN, "lat": 37.7850, "lng": -122.4060},
    {"id": "drv-eli", "first": "Eli", "last": "Novak", "cls": VehicleClass.SUV, "lat": 37.7920, "lng": -122.4010},
    {"id": "drv-ana", "first": "Ana", "last": "Silva", "cls": VehicleClass.HATCHBACK, "lat": 37.7760, "lng": -122.4170},
    {"id": "drv-kai", "first": "Kai", "last": "Tanaka", "cls": VehicleClass.LUXURY, "lat": 37.7950, "lng": -122.3990},
    {"id": "drv-zoe", "first": "Zoe", "last": "Adler", "cls": VehicleClass.SUV, "lat": 37.7700, "lng": -122.4250},
]

PLACES = {
    "union_square": Location(37.7880, -122.4075, "333 Post St", "San Francisco", "CA", "94108"),
    "ferry_building": Location(37.7955, -122.3937, "1 Ferry Building", "San Francisco", "CA", "94111"),
    "mission_dolores": Location(37.7599, -122.4268, "3321 16th St", "San Francisco", "CA", "94114"),
    "civic_center": Location(37.7793, -122.4193, "1 Dr Carlton B Goodlett Pl", "San Francisco", "CA", "94102"),
    "oracle_park": Location(37.7786, -122.3893, "24 Willie Mays Plaza", "San Francisco", "CA", "94107"),
}

# (customer, pickup, destination, class, driver, final status)
RIDES = [
    ("cust-ava", "union_square", "ferry_building", VehicleClass.SEDAN, None, RideStatus.REQUESTED),
    ("cust-liam", "civic_center", "oracle_park", VehicleClass.SUV, None, RideStatus.REQUESTED),
    ("cust-maya", "mission_dolores", "union_square", VehicleClass.SEDAN, "drv-jo", RideStatus.ACCEPTED),
    ("cust-noah", "ferry_building", "civic_center", VehicleClass.HATCHBACK, "drv-ana", RideStatus.IN_PROGRESS),
    ("cust-ava", "oracle_park", "mission_dolores", VehicleClass.LUXURY, "drv-kai", RideStatus.COMPLETED),
]

PATH = [RideStatus.DRIVER_ARRIVING, RideStatus.IN_PROGRESS, RideStatus.COMPLETED]


async def seed():
    async with async_session_factory() as session:
        # ── Users ─────────────────────────────────────────────────────
        names = {}
        for c in CUSTOMERS:
            session.add(
                UserModel(
                    id=c["id"],
                    email=c["email"],
                    first_name=c["first"],
                    last_name=c["last"],
                    role=UserRole.CUSTOMER,
                    saved_locations=[],
                    payment_methods=["cash"],
                )
            )
            names[c["id"]] = f"{c['first']} {c['last']}"
        for d in DRIVERS:
            session.add(
                UserModel(
                    id=d["id"],
                    email=f"{d['first'].lower()}@drivers.example.com",
                    first_name=d["first"],
                    last_name=d["last"],
                    role=UserRole.DRIVER,
                    license_number=f"CA-{d['id'][4:].upper()}-001",
                    vehicle_make="Toyota",
                    vehicle_model="Camry",
                    vehicle_year=2022,
                    vehicle_color="Silver",
                    license_plate=f"7{d['id'][4:].upper()}123",
                    vehicle_class=d["cls"],
                    is_available=True,
                    is_verified=True,
                    current_lat=d["lat"],
                    current_lng=d["lng"],
                    h3_cell=location_cell(d["lat"], d["lng"], settings.h3_resolution),
                )
            )
            names[d["id"]] = f"{d['first']} {d['last']}"
        await session.commit()
        print(f"  Created {len(CUSTOMERS)} customers and {len(DRIVERS)} drivers")

        # ── Rides ─────────────────────────────────────────────────────
        manager = RideLifecycleManager(session, InMemoryEventBus())
        for customer, pickup, destination, cls, driver, final in RIDES:
            created = await manager.create_ride_request(
                customer, names[customer], PLACES[pickup], PLACES[destination], cls, "cash"
            )
            if not created.ok:
                raise SystemExit(f"Seeding failed: {created.message}")
            ride_id = created.value
            if driver is not None:
                await manager.accept_ride(ride_id, driver, names[driver])
                for status in PATH[: PATH.index(final) + 1] if final in PATH else []:
                    await manager.update_ride_status(ride_id, status)
            if final is RideStatus.COMPLETED:
                await manager.rate_ride(ride_id, 5, "Smooth ride")
        print(f"  Created {len(RIDES)} rides")

        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
