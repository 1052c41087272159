"""
FastAPI application factory.

* Registers routes for rides, navigation, users and admin.
* Builds the event bus, subscription registry and navigation service
  via lifespan events and closes the directions client on shutdown.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from nextride.api.middleware import limiter
from nextride.api.routes import admin, navigation, rides, users
from nextride.config import settings
from nextride.infrastructure.directions import DirectionsClient
from nextride.infrastructure.events import (
    EventBus,
    InMemoryEventBus,
    RedisEventBus,
    SubscriptionRegistry,
)
from nextride.infrastructure.redis_client import get_redis
from nextride.services.navigation import NavigationService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def build_event_bus() -> EventBus:
    if settings.event_bus_backend == "memory":
        return InMemoryEventBus()
    return RedisEventBus(await get_redis())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire shared services on startup; release them on shutdown."""
    bus = await build_event_bus()
    directions = DirectionsClient(
        settings.directions_api_key,
        settings.directions_base_url,
        settings.directions_timeout_seconds,
    )
    app.state.event_bus = bus
    app.state.subscriptions = SubscriptionRegistry(bus)
    app.state.navigation = NavigationService(directions)
    logger.info("Event bus: %s", type(bus).__name__)
    yield
    await directions.aclose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="NextRide API",
        description=(
            "Ride-hailing backend: customers request rides, nearby drivers "
            "are notified, one driver wins the acceptance race and is "
            "tracked along the route until the trip is completed and rated."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(navigation.router, prefix="/api/v1")
    app.include_router(users.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
