"""
Driver navigation endpoints
===========================

POST   /api/v1/rides/{ride_id}/navigation           -- fetch a route and start tracking
POST   /api/v1/rides/{ride_id}/navigation/position  -- feed one position sample
GET    /api/v1/rides/{ride_id}/navigation           -- current navigation state
DELETE /api/v1/rides/{ride_id}/navigation           -- stop tracking

Only the ride's assigned driver may start, feed or stop navigation.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Request

from nextride.api.dependencies import get_current_user_id, get_navigation, get_ride_manager
from nextride.api.errors import unwrap
from nextride.api.middleware import limiter
from nextride.api.schemas import (
    CoordinateSchema,
    NavigationStartResponse,
    NavigationStateResponse,
    PositionResponse,
)
from nextride.config import settings
from nextride.services.navigation import NavigationService
from nextride.services.rides import RideLifecycleManager

router = APIRouter(prefix="/rides/{ride_id}/navigation", tags=["navigation"])


@router.post(
    "",
    response_model=NavigationStartResponse,
    summary="Start navigating from the driver's position",
    description=(
        "Targets the pickup while the driver is on the way and the "
        "destination once the trip is in progress."
    ),
    responses={503: {"description": "Directions provider unavailable"}},
)
@limiter.limit(settings.rate_limit)
async def start_navigation(
    request: Request,
    ride_id: str,
    body: CoordinateSchema,
    caller_id: str = Depends(get_current_user_id),
    manager: RideLifecycleManager = Depends(get_ride_manager),
    navigation: NavigationService = Depends(get_navigation),
):
    started = unwrap(await navigation.start(manager, ride_id, body.to_domain(), caller_id))
    route = asdict(started.route)
    return {
        "target": started.target,
        "distance_km": route["distance_km"],
        "duration_min": route["duration_min"],
        "coordinates": route["coordinates"],
        "instructions": route["instructions"],
        "region": asdict(started.region),
        "state": asdict(started.state),
    }


@router.post(
    "/position",
    response_model=PositionResponse,
    summary="Report the driver's position",
    description=(
        "Samples arriving too soon or too close to the last accepted one "
        "come back with accepted=false and change nothing.  Navigation must "
        "have been started first."
    ),
)
@limiter.limit(settings.rate_limit)
async def report_position(
    request: Request,
    ride_id: str,
    body: CoordinateSchema,
    caller_id: str = Depends(get_current_user_id),
    manager: RideLifecycleManager = Depends(get_ride_manager),
    navigation: NavigationService = Depends(get_navigation),
):
    return unwrap(
        await navigation.update_position(manager, ride_id, body.to_domain(), caller_id)
    )


@router.get("", response_model=NavigationStateResponse, summary="Current navigation state")
@limiter.limit(settings.rate_limit)
async def navigation_state(
    request: Request,
    ride_id: str,
    navigation: NavigationService = Depends(get_navigation),
):
    return navigation.state(ride_id)


@router.delete("", status_code=204, summary="Stop navigating")
@limiter.limit(settings.rate_limit)
async def stop_navigation(
    request: Request,
    ride_id: str,
    caller_id: str = Depends(get_current_user_id),
    navigation: NavigationService = Depends(get_navigation),
):
    unwrap(navigation.stop(ride_id, caller_id))
