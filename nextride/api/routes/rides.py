"""
Ride endpoints
==============

POST  /api/v1/rides                    -- request a ride (customer)
GET   /api/v1/rides/available          -- newest open requests (driver polling)
GET   /api/v1/rides/{ride_id}          -- current ride document
GET   /api/v1/rides/{ride_id}/region   -- map viewport around pickup + destination
POST  /api/v1/rides/{ride_id}/accept   -- accept an open request (driver)
PATCH /api/v1/rides/{ride_id}/status   -- advance the trip (assigned driver)
PATCH /api/v1/rides/{ride_id}/cancel   -- cancel before the trip starts (customer)
POST  /api/v1/rides/{ride_id}/rating   -- rate a completed ride (customer)
WS    /api/v1/rides/{ride_id}/events   -- live ride snapshots, one stream per user

Every write takes the caller from ``X-User-Id``; the manager decides
whether that caller may make the change (403 otherwise).
"""

import logging
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    Header,
    Query,
    Request,
    WebSocket,
    WebSocketDisconnect,
    status,
)

from nextride.api.dependencies import (
    get_current_user_id,
    get_ride_manager,
    get_subscriptions,
)
from nextride.api.errors import unwrap
from nextride.api.middleware import limiter
from nextride.api.schemas import (
    AcceptRideRequest,
    RatingRequest,
    RegionSchema,
    RideCreateRequest,
    RideResponse,
    StatusUpdateRequest,
)
from nextride.config import settings
from nextride.domain.geo import bounding_region
from nextride.infrastructure.events import SubscriptionRegistry
from nextride.services.rides import RideLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rides", tags=["rides"])


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Request a ride",
    responses={409: {"description": "Ride no longer available"}},
)
@limiter.limit(settings.rate_limit)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    customer_id: str = Depends(get_current_user_id),
    manager: RideLifecycleManager = Depends(get_ride_manager),
):
    ride_id = unwrap(
        await manager.create_ride_request(
            customer_id,
            body.customer_name,
            body.pickup.to_domain(),
            body.destination.to_domain(),
            body.vehicle_class,
            body.payment_method,
        )
    )
    return unwrap(await manager.get_ride(ride_id))


@router.get(
    "/available",
    response_model=list[RideResponse],
    summary="List open ride requests, newest first",
)
@limiter.limit(settings.rate_limit)
async def available_rides(
    request: Request,
    limit: int = Query(settings.available_rides_limit, ge=1, le=100),
    manager: RideLifecycleManager = Depends(get_ride_manager),
):
    return unwrap(await manager.get_available_rides(limit))


@router.get("/{ride_id}", response_model=RideResponse, summary="Get a ride")
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: str,
    manager: RideLifecycleManager = Depends(get_ride_manager),
):
    return unwrap(await manager.get_ride(ride_id))


@router.get(
    "/{ride_id}/region",
    response_model=RegionSchema,
    summary="Map viewport containing pickup and destination",
)
@limiter.limit(settings.rate_limit)
async def ride_region(
    request: Request,
    ride_id: str,
    padding: float = Query(0.02, ge=0, le=1),
    manager: RideLifecycleManager = Depends(get_ride_manager),
):
    ride = unwrap(await manager.get_ride(ride_id))
    return bounding_region(ride.pickup, ride.destination, padding)


@router.post(
    "/{ride_id}/accept",
    response_model=RideResponse,
    summary="Accept an open ride request",
    description=(
        "Only registered drivers may accept, and never their own request. "
        "Exactly one driver wins; everyone else gets 409."
    ),
)
@limiter.limit(settings.rate_limit)
async def accept_ride(
    request: Request,
    ride_id: str,
    body: AcceptRideRequest,
    driver_id: str = Depends(get_current_user_id),
    manager: RideLifecycleManager = Depends(get_ride_manager),
):
    return unwrap(await manager.accept_ride(ride_id, driver_id, body.driver_name))


@router.patch(
    "/{ride_id}/status",
    response_model=RideResponse,
    summary="Advance a ride (assigned driver)",
)
@limiter.limit(settings.rate_limit)
async def update_status(
    request: Request,
    ride_id: str,
    body: StatusUpdateRequest,
    caller_id: str = Depends(get_current_user_id),
    manager: RideLifecycleManager = Depends(get_ride_manager),
):
    return unwrap(
        await manager.update_ride_status(ride_id, body.status, caller_id=caller_id)
    )


@router.patch(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel a ride",
    description=(
        "The ride's customer only, while the ride is requested, accepted "
        "or driver_arriving."
    ),
)
@limiter.limit(settings.rate_limit)
async def cancel_ride(
    request: Request,
    ride_id: str,
    caller_id: str = Depends(get_current_user_id),
    manager: RideLifecycleManager = Depends(get_ride_manager),
):
    return unwrap(await manager.cancel_ride(ride_id, caller_id=caller_id))


@router.post(
    "/{ride_id}/rating",
    response_model=RideResponse,
    summary="Rate a completed ride",
)
@limiter.limit(settings.rate_limit)
async def rate_ride(
    request: Request,
    ride_id: str,
    body: RatingRequest,
    caller_id: str = Depends(get_current_user_id),
    manager: RideLifecycleManager = Depends(get_ride_manager),
):
    return unwrap(
        await manager.rate_ride(ride_id, body.rating, body.review, caller_id=caller_id)
    )


@router.websocket("/{ride_id}/events")
async def ride_events(
    websocket: WebSocket,
    ride_id: str,
    x_user_id: Optional[str] = Header(None),
    subscriptions: SubscriptionRegistry = Depends(get_subscriptions),
):
    if not x_user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    sub = await subscriptions.subscribe_ride(ride_id, x_user_id)
    try:
        await websocket.accept()
        async for message in sub:
            await websocket.send_json(message)
    except WebSocketDisconnect:
        logger.debug("User %s left ride %s", x_user_id, ride_id)
    finally:
        await subscriptions.release(ride_id, x_user_id, sub)
