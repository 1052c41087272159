"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    DRIVER_ARRIVING = "driver_arriving"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.REQUESTED: {RideStatus.ACCEPTED, RideStatus.CANCELLED},
    RideStatus.ACCEPTED: {RideStatus.DRIVER_ARRIVING, RideStatus.CANCELLED},
    RideStatus.DRIVER_ARRIVING: {RideStatus.IN_PROGRESS, RideStatus.CANCELLED},
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}

# Timestamp attribute stamped when a ride enters the status
TRANSITION_TIMESTAMPS: dict[RideStatus, str] = {
    RideStatus.ACCEPTED: "accepted_at",
    RideStatus.IN_PROGRESS: "started_at",
    RideStatus.COMPLETED: "completed_at",
    RideStatus.CANCELLED: "cancelled_at",
}

ACTIVE_STATUSES = frozenset(
    {
        RideStatus.REQUESTED,
        RideStatus.ACCEPTED,
        RideStatus.DRIVER_ARRIVING,
        RideStatus.IN_PROGRESS,
    }
)


class Actor(str, enum.Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"
    SYSTEM = "system"


# Who may move a ride into each status
TRANSITION_ACTORS: dict[RideStatus, set[Actor]] = {
    RideStatus.ACCEPTED: {Actor.DRIVER},
    RideStatus.DRIVER_ARRIVING: {Actor.DRIVER},
    RideStatus.IN_PROGRESS: {Actor.DRIVER},
    RideStatus.COMPLETED: {Actor.DRIVER},
    RideStatus.CANCELLED: {Actor.CUSTOMER, Actor.SYSTEM},
}


class VehicleClass(str, enum.Enum):
    SEDAN = "sedan"
    SUV = "suv"
    HATCHBACK = "hatchback"
    LUXURY = "luxury"


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"


class NotificationType(str, enum.Enum):
    RIDE_REQUEST = "ride_request"
    RIDE_ACCEPTED = "ride_accepted"
    DRIVER_ARRIVING = "driver_arriving"
    RIDE_STARTED = "ride_started"
    RIDE_COMPLETED = "ride_completed"
    RIDE_CANCELLED = "ride_cancelled"
