"""FastAPI dependency injection helpers."""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from nextride.infrastructure.database import async_session_factory
from nextride.infrastructure.events import EventBus, SubscriptionRegistry
from nextride.services.navigation import NavigationService
from nextride.services.rides import RideLifecycleManager


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_event_bus(conn: HTTPConnection) -> EventBus:
    return conn.app.state.event_bus


def get_subscriptions(conn: HTTPConnection) -> SubscriptionRegistry:
    return conn.app.state.subscriptions


def get_navigation(conn: HTTPConnection) -> NavigationService:
    return conn.app.state.navigation


async def get_ride_manager(
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
) -> RideLifecycleManager:
    return RideLifecycleManager(db, bus)


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity, as asserted by the auth gateway in ``X-User-Id``."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id
