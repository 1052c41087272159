"""Which notification a ride transition produces, and its wording."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .entities import Ride
from .enums import NotificationType, RideStatus


@dataclass(frozen=True)
class NotificationPayload:
    ride_id: Optional[str]
    type: NotificationType
    user_id: str
    title: str
    body: str


# Customer-facing messages keyed by the status the ride entered
_CUSTOMER_EVENTS: dict[RideStatus, NotificationType] = {
    RideStatus.ACCEPTED: NotificationType.RIDE_ACCEPTED,
    RideStatus.DRIVER_ARRIVING: NotificationType.DRIVER_ARRIVING,
    RideStatus.IN_PROGRESS: NotificationType.RIDE_STARTED,
    RideStatus.COMPLETED: NotificationType.RIDE_COMPLETED,
}


def _customer_copy(kind: NotificationType, driver_name: Optional[str]) -> tuple[str, str]:
    driver = driver_name or "Your driver"
    if kind is NotificationType.RIDE_ACCEPTED:
        return "Driver Found!", f"{driver} is on the way to pick you up"
    if kind is NotificationType.DRIVER_ARRIVING:
        return "Driver Arriving", f"{driver} has arrived at the pickup location"
    if kind is NotificationType.RIDE_STARTED:
        return "Ride Started", "Your ride has started. Enjoy your trip!"
    return (
        "Ride Completed",
        "You have reached your destination. Thanks for riding with us!",
    )


def ride_request_notification(ride: Ride, driver_id: str) -> NotificationPayload:
    """New-request alert sent to an eligible driver."""
    pickup = ride.pickup.format_address()
    origin = f" from {pickup}" if pickup else ""
    return NotificationPayload(
        ride_id=ride.id,
        type=NotificationType.RIDE_REQUEST,
        user_id=driver_id,
        title="New Ride Request",
        body=f"{ride.customer_name or 'Customer'} needs a ride{origin} - ${ride.fare:.2f}",
    )


def notifications_for_transition(ride: Ride) -> list[NotificationPayload]:
    """Payloads to dispatch right after *ride* entered ``ride.status``."""
    kind = _CUSTOMER_EVENTS.get(ride.status)
    if kind is not None:
        title, body = _customer_copy(kind, ride.driver_name)
        return [NotificationPayload(ride.id, kind, ride.customer_id, title, body)]

    if ride.status is RideStatus.CANCELLED and ride.driver_id:
        return [
            NotificationPayload(
                ride_id=ride.id,
                type=NotificationType.RIDE_CANCELLED,
                user_id=ride.driver_id,
                title="Ride Cancelled",
                body=f"{ride.customer_name or 'Customer'} has cancelled the ride",
            )
        ]
    return []
