"""
Admin / observability endpoints
===============================

GET   /api/v1/admin/health                     -- simple health check
GET   /api/v1/admin/subscriptions              -- live ride subscriptions and navigation sessions
PATCH /api/v1/admin/drivers/{user_id}/verify   -- mark a driver as verified after document review

These sit behind the operator gateway; riders and drivers never reach them.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from nextride.api.dependencies import get_db, get_navigation, get_subscriptions
from nextride.api.schemas import HealthResponse, UserResponse
from nextride.infrastructure.events import SubscriptionRegistry
from nextride.infrastructure.repositories import UserRepository
from nextride.services.navigation import NavigationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()


@router.get("/subscriptions", summary="Count live ride subscriptions")
async def subscriptions(
    registry: SubscriptionRegistry = Depends(get_subscriptions),
    navigation: NavigationService = Depends(get_navigation),
):
    return {"active": registry.count(), "navigating": navigation.active_count()}


@router.patch(
    "/drivers/{user_id}/verify",
    response_model=UserResponse,
    summary="Verify a driver",
    description="Only verified drivers are offered nearby ride requests.",
)
async def verify_driver(user_id: str, db: AsyncSession = Depends(get_db)):
    repo = UserRepository(db)
    if not await repo.set_verified(user_id):
        raise HTTPException(status_code=404, detail="Driver not found.")
    await db.commit()
    logger.info("Driver %s verified", user_id)
    user = await repo.get_by_id(user_id)
    await db.refresh(user)
    return user
