"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  ``RideRepository`` hands out ``Ride``
entities and performs the check-and-set writes that keep concurrent
drivers from both winning the same ride.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import NotificationModel, RideModel, UserModel
from nextride.domain.entities import Coordinate, Location, Ride
from nextride.domain.enums import ACTIVE_STATUSES, RideStatus, UserRole
from nextride.domain.notifications import NotificationPayload


def _location_columns(prefix: str, location: Location) -> dict[str, Any]:
    return {
        f"{prefix}_lat": location.latitude,
        f"{prefix}_lng": location.longitude,
        f"{prefix}_address": location.address,
        f"{prefix}_city": location.city,
        f"{prefix}_state": location.state,
        f"{prefix}_zip_code": location.zip_code,
        f"{prefix}_country": location.country,
    }


def _location(row: RideModel, prefix: str) -> Location:
    return Location(
        latitude=getattr(row, f"{prefix}_lat"),
        longitude=getattr(row, f"{prefix}_lng"),
        address=getattr(row, f"{prefix}_address") or "",
        city=getattr(row, f"{prefix}_city") or "",
        state=getattr(row, f"{prefix}_state") or "",
        zip_code=getattr(row, f"{prefix}_zip_code") or "",
        country=getattr(row, f"{prefix}_country"),
    )


def to_entity(row: RideModel) -> Ride:
    driver_position = None
    if row.driver_lat is not None and row.driver_lng is not None:
        driver_position = Coordinate(row.driver_lat, row.driver_lng)
    return Ride(
        id=row.id,
        customer_id=row.customer_id,
        customer_name=row.customer_name,
        pickup=_location(row, "pickup"),
        destination=_location(row, "destination"),
        vehicle_class=row.vehicle_class,
        fare=row.fare,
        estimated_duration=row.estimated_duration,
        payment_method=row.payment_method,
        status=RideStatus(row.status),
        requested_at=row.requested_at,
        accepted_at=row.accepted_at,
        started_at=row.started_at,
        completed_at=row.completed_at,
        cancelled_at=row.cancelled_at,
        driver_id=row.driver_id,
        driver_name=row.driver_name,
        rating=row.rating,
        review=row.review,
        driver_position=driver_position,
        last_location_update=row.last_location_update,
    )


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: Ride) -> Ride:
        row = RideModel(
            customer_id=ride.customer_id,
            customer_name=ride.customer_name,
            vehicle_class=ride.vehicle_class,
            fare=ride.fare,
            estimated_duration=ride.estimated_duration,
            payment_method=ride.payment_method,
            status=ride.status,
            requested_at=ride.requested_at,
            **_location_columns("pickup", ride.pickup),
            **_location_columns("destination", ride.destination),
        )
        self.session.add(row)
        await self.session.flush()
        ride.id = row.id
        return ride

    async def get_by_id(self, ride_id: str) -> Optional[Ride]:
        row = await self.session.get(RideModel, ride_id, populate_existing=True)
        return to_entity(row) if row else None

    async def conditional_update(
        self,
        ride_id: str,
        expected_status: RideStatus,
        values: dict[str, Any],
        *,
        require_unassigned: bool = False,
    ) -> bool:
        """
        ``UPDATE rides SET ... WHERE id = :id AND status = :expected``.

        Returns ``False`` when another writer moved the ride first, so
        exactly one of several concurrent callers can win.
        """
        stmt = (
            update(RideModel)
            .where(RideModel.id == ride_id)
            .where(RideModel.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if require_unassigned:
            stmt = stmt.where(RideModel.driver_id.is_(None))
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def set_rating(self, ride_id: str, rating: int, review: str) -> bool:
        """Store a rating once; a second rating finds no matching row."""
        result = await self.session.execute(
            update(RideModel)
            .where(RideModel.id == ride_id)
            .where(RideModel.status == RideStatus.COMPLETED)
            .where(RideModel.rating.is_(None))
            .values(rating=rating, review=review)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def update_driver_position(
        self, ride_id: str, position: Coordinate, at: datetime
    ) -> bool:
        result = await self.session.execute(
            update(RideModel)
            .where(RideModel.id == ride_id)
            .values(
                driver_lat=position.latitude,
                driver_lng=position.longitude,
                last_location_update=at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_available(self, limit: int = 20) -> list[Ride]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.status == RideStatus.REQUESTED)
            .order_by(RideModel.requested_at.desc())
            .limit(limit)
        )
        return [to_entity(r) for r in result.scalars().all()]

    async def get_user_rides(
        self, user_id: str, role: UserRole, *, active_only: bool = False
    ) -> list[Ride]:
        column = RideModel.customer_id if role is UserRole.CUSTOMER else RideModel.driver_id
        query = select(RideModel).where(column == user_id)
        if active_only:
            query = query.where(RideModel.status.in_(list(ACTIVE_STATUSES)))
        result = await self.session.execute(
            query.order_by(RideModel.requested_at.desc())
        )
        return [to_entity(r) for r in result.scalars().all()]

    async def average_driver_rating(self, driver_id: str) -> Optional[float]:
        result = await self.session.execute(
            select(func.avg(RideModel.rating))
            .where(RideModel.driver_id == driver_id)
            .where(RideModel.rating.is_not(None))
        )
        value = result.scalar()
        return float(value) if value is not None else None


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: UserModel) -> UserModel:
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: str) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_available_drivers(
        self, cells: Optional[Iterable[str]] = None
    ) -> list[UserModel]:
        query = (
            select(UserModel)
            .where(UserModel.role == UserRole.DRIVER)
            .where(UserModel.is_available.is_(True))
            .where(UserModel.is_verified.is_(True))
        )
        if cells is not None:
            query = query.where(UserModel.h3_cell.in_(list(cells)))
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def set_availability(self, user_id: str, is_available: bool) -> bool:
        result = await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .where(UserModel.role == UserRole.DRIVER)
            .values(is_available=is_available)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_verified(self, user_id: str, is_verified: bool = True) -> bool:
        result = await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .where(UserModel.role == UserRole.DRIVER)
            .values(is_verified=is_verified)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def update_location(
        self, user_id: str, position: Coordinate, h3_cell: Optional[str]
    ) -> bool:
        result = await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(
                current_lat=position.latitude,
                current_lng=position.longitude,
                h3_cell=h3_cell,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def record_completed_ride(self, driver_id: str) -> None:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == driver_id)
            .values(total_rides=UserModel.total_rides + 1)
            .execution_options(synchronize_session=False)
        )

    async def set_rating(self, driver_id: str, rating: float) -> None:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == driver_id)
            .values(rating=round(rating, 2))
            .execution_options(synchronize_session=False)
        )


class NotificationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, payload: NotificationPayload) -> NotificationModel:
        row = NotificationModel(
            user_id=payload.user_id,
            ride_id=payload.ride_id,
            type=payload.type,
            title=payload.title,
            body=payload.body,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_for_user(self, user_id: str, limit: int = 50) -> list[NotificationModel]:
        result = await self.session.execute(
            select(NotificationModel)
            .where(NotificationModel.user_id == user_id)
            .order_by(NotificationModel.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
