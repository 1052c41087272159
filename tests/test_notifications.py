"""Unit tests for which notification each ride transition produces."""

import pytest

from nextride.domain.entities import Location, Ride
from nextride.domain.enums import NotificationType, RideStatus, VehicleClass
from nextride.domain.notifications import notifications_for_transition, ride_request_notification


def make_ride(status: RideStatus, driver_id="drv-1", driver_name="Dana Driver") -> Ride:
    return Ride(
        customer_id="cust-1",
        customer_name="Casey Customer",
        pickup=Location(37.7749, -122.4194, "1 Market St", "San Francisco", "CA"),
        destination=Location(37.7849, -122.4094),
        vehicle_class=VehicleClass.SEDAN,
        fare=12.5,
        estimated_duration=9,
        payment_method="cash",
        id="ride-1",
        status=status,
        driver_id=driver_id,
        driver_name=driver_name,
    )


def test_ride_request_goes_to_driver():
    payload = ride_request_notification(make_ride(RideStatus.REQUESTED, None, None), "drv-9")
    assert payload.user_id == "drv-9"
    assert payload.type is NotificationType.RIDE_REQUEST
    assert payload.title == "New Ride Request"
    assert payload.body == (
        "Casey Customer needs a ride from 1 Market St, San Francisco, CA - $12.50"
    )


def test_ride_request_without_address():
    ride = make_ride(RideStatus.REQUESTED, None, None)
    ride.pickup = Location(37.7749, -122.4194)
    assert ride_request_notification(ride, "drv-9").body == "Casey Customer needs a ride - $12.50"


@pytest.mark.parametrize(
    "status, kind, title",
    [
        (RideStatus.ACCEPTED, NotificationType.RIDE_ACCEPTED, "Driver Found!"),
        (RideStatus.DRIVER_ARRIVING, NotificationType.DRIVER_ARRIVING, "Driver Arriving"),
        (RideStatus.IN_PROGRESS, NotificationType.RIDE_STARTED, "Ride Started"),
        (RideStatus.COMPLETED, NotificationType.RIDE_COMPLETED, "Ride Completed"),
    ],
)
def test_trip_progress_notifies_customer(status, kind, title):
    [payload] = notifications_for_transition(make_ride(status))
    assert payload.user_id == "cust-1"
    assert payload.ride_id == "ride-1"
    assert payload.type is kind
    assert payload.title == title


def test_accepted_mentions_driver():
    [payload] = notifications_for_transition(make_ride(RideStatus.ACCEPTED))
    assert payload.body == "Dana Driver is on the way to pick you up"


def test_cancel_notifies_assigned_driver():
    [payload] = notifications_for_transition(make_ride(RideStatus.CANCELLED))
    assert payload.user_id == "drv-1"
    assert payload.type is NotificationType.RIDE_CANCELLED
    assert payload.body == "Casey Customer has cancelled the ride"


def test_cancel_without_driver_notifies_nobody():
    assert notifications_for_transition(make_ride(RideStatus.CANCELLED, None, None)) == []


def test_requested_notifies_nobody():
    assert notifications_for_transition(make_ride(RideStatus.REQUESTED, None, None)) == []
