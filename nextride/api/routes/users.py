"""
User endpoints
==============

POST  /api/v1/users                       -- register the calling user (customer or driver)
GET   /api/v1/users/{user_id}             -- profile
PATCH /api/v1/users/{user_id}/availability -- driver goes online / offline
PUT   /api/v1/users/{user_id}/location    -- driver position outside of a ride
GET   /api/v1/users/{user_id}/rides       -- ride history or active rides for a role
GET   /api/v1/users/{user_id}/notifications -- newest notifications first
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nextride.api.dependencies import get_current_user_id, get_db, get_ride_manager
from nextride.api.errors import unwrap
from nextride.api.middleware import limiter
from nextride.api.schemas import (
    AvailabilityRequest,
    CoordinateSchema,
    NotificationResponse,
    RideResponse,
    UserCreateRequest,
    UserResponse,
)
from nextride.config import settings
from nextride.domain.dispatch import location_cell
from nextride.domain.enums import UserRole
from nextride.infrastructure.models import UserModel
from nextride.infrastructure.repositories import NotificationRepository, UserRepository
from nextride.services.rides import RideLifecycleManager

router = APIRouter(prefix="/users", tags=["users"])


def _require_self(user_id: str, caller_id: str) -> None:
    if user_id != caller_id:
        raise HTTPException(status_code=403, detail="Not allowed")


async def _load_user(repo: UserRepository, user_id: str) -> UserModel:
    user = await repo.get_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found.")
    return user


@router.post(
    "",
    status_code=201,
    response_model=UserResponse,
    summary="Register the calling user",
    responses={409: {"description": "User already exists"}},
)
@limiter.limit(settings.rate_limit)
async def create_user(
    request: Request,
    body: UserCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    user = UserModel(
        id=user_id,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        role=body.role,
        phone_number=body.phone_number,
    )
    if body.role is UserRole.DRIVER:
        user.license_number = body.license_number
        user.vehicle_make = body.vehicle.make
        user.vehicle_model = body.vehicle.model
        user.vehicle_year = body.vehicle.year
        user.vehicle_color = body.vehicle.color
        user.license_plate = body.vehicle.license_plate
        user.vehicle_class = body.vehicle.vehicle_class
    else:
        user.saved_locations = []
        user.payment_methods = []

    try:
        await UserRepository(db).create(user)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="User already exists.")
    await db.commit()
    await db.refresh(user)
    return user


@router.get("/{user_id}", response_model=UserResponse, summary="Get a user profile")
@limiter.limit(settings.rate_limit)
async def get_user(
    request: Request,
    user_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await _load_user(UserRepository(db), user_id)


@router.patch(
    "/{user_id}/availability",
    response_model=UserResponse,
    summary="Set driver availability",
)
@limiter.limit(settings.rate_limit)
async def set_availability(
    request: Request,
    user_id: str,
    body: AvailabilityRequest,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    _require_self(user_id, caller_id)
    repo = UserRepository(db)
    if not await repo.set_availability(user_id, body.is_available):
        raise HTTPException(status_code=404, detail="Driver not found.")
    await db.commit()
    user = await _load_user(repo, user_id)
    await db.refresh(user)
    return user


@router.put(
    "/{user_id}/location",
    response_model=UserResponse,
    summary="Update a driver's current position",
)
@limiter.limit(settings.rate_limit)
async def update_location(
    request: Request,
    user_id: str,
    body: CoordinateSchema,
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    _require_self(user_id, caller_id)
    repo = UserRepository(db)
    cell = location_cell(body.latitude, body.longitude, settings.h3_resolution)
    if not await repo.update_location(user_id, body.to_domain(), cell):
        raise HTTPException(status_code=404, detail="User not found.")
    await db.commit()
    user = await _load_user(repo, user_id)
    await db.refresh(user)
    return user


@router.get(
    "/{user_id}/rides",
    response_model=list[RideResponse],
    summary="Rides for a user, newest first",
)
@limiter.limit(settings.rate_limit)
async def user_rides(
    request: Request,
    user_id: str,
    role: UserRole = Query(UserRole.CUSTOMER),
    active: bool = Query(False, description="Only rides that have not ended"),
    manager: RideLifecycleManager = Depends(get_ride_manager),
):
    return unwrap(await manager.get_user_rides(user_id, role, active))


@router.get(
    "/{user_id}/notifications",
    response_model=list[NotificationResponse],
    summary="Notifications for a user, newest first",
)
@limiter.limit(settings.rate_limit)
async def notifications(
    request: Request,
    user_id: str,
    limit: int = Query(50, ge=1, le=200),
    caller_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    _require_self(user_id, caller_id)
    return await NotificationRepository(db).list_for_user(user_id, limit)
