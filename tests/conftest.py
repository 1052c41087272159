"""
Shared test fixtures.

Uses a file-backed SQLite database (via aiosqlite) in a per-test temp
directory so tests run without Docker / PostgreSQL / Redis.  A file
rather than ``:memory:`` gives every session its own connection, which
the acceptance-race tests rely on.  Events go through ``InMemoryEventBus``.
"""

from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from nextride.domain.dispatch import location_cell
from nextride.domain.entities import Location
from nextride.domain.enums import UserRole, VehicleClass
from nextride.infrastructure.database import Base
from nextride.infrastructure.events import InMemoryEventBus
from nextride.infrastructure.models import UserModel
from nextride.services.rides import RideLifecycleManager

# Downtown San Francisco
PICKUP = Location(37.7749, -122.4194, "1 Market St", "San Francisco", "CA", "94105")
DESTINATION = Location(37.7849, -122.4094, "500 Sutter St", "San Francisco", "CA", "94102")


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables in a fresh SQLite file, yield a session factory, dispose."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def manager(db_session, bus) -> RideLifecycleManager:
    return RideLifecycleManager(db_session, bus)


# ── Helpers ───────────────────────────────────────────────────────────


async def add_driver(
    session: AsyncSession,
    user_id: str = "drv-1",
    lat: Optional[float] = 37.7760,
    lng: Optional[float] = -122.4180,
    is_available: bool = True,
    is_verified: bool = True,
) -> UserModel:
    user = UserModel(
        id=user_id,
        email=f"{user_id}@example.com",
        first_name="Dana",
        last_name="Driver",
        role=UserRole.DRIVER,
        license_number="D1234567",
        vehicle_class=VehicleClass.SEDAN,
        is_available=is_available,
        is_verified=is_verified,
        current_lat=lat,
        current_lng=lng,
        h3_cell=location_cell(lat, lng) if lat is not None and lng is not None else None,
    )
    session.add(user)
    await session.commit()
    return user


async def request_ride(manager: RideLifecycleManager, customer_id: str = "cust-1") -> str:
    outcome = await manager.create_ride_request(
        customer_id, "Casey Customer", PICKUP, DESTINATION, "sedan", "cash"
    )
    assert outcome.ok, outcome.error
    return outcome.value
