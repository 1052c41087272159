"""
Error taxonomy and the ``Outcome`` result type.

Domain code raises ``RideError`` subclasses.  The service layer catches
them at its boundary, logs the technical detail and hands callers an
``Outcome`` they can branch on.  ``user_message`` is the short text that
is safe to show to a rider or driver.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class RideError(Exception):
    user_message = "Something went wrong. Please try again."


class ValidationError(RideError):
    """Malformed or missing input.  Never retried."""

    user_message = "Invalid request."


class NotFoundError(RideError):
    user_message = "Not found."


class PermissionDeniedError(RideError):
    """The caller is not a party allowed to make this change."""

    user_message = "You are not allowed to do that."


class ConflictError(RideError):
    """The stored state changed under us (e.g. another driver accepted)."""

    user_message = "Ride no longer available."


class InvalidTransitionError(RideError):
    """The requested status change is not an edge of the ride state machine."""

    user_message = "Failed to update ride status."


class CollaboratorUnavailable(RideError):
    """Database, directions, identity or notification backend failed."""

    user_message = "Service temporarily unavailable. Please try again."


class GeometryDegenerate(RideError):
    """Route has too few points for the requested calculation."""

    user_message = "Route not available yet."


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[RideError] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: RideError) -> "Outcome[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> Optional[str]:
        return self.error.user_message if self.error else None
