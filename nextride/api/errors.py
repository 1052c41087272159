"""Map service ``Outcome`` failures onto HTTP responses."""

from typing import TypeVar

from fastapi import HTTPException

from nextride.domain.errors import (
    CollaboratorUnavailable,
    ConflictError,
    GeometryDegenerate,
    InvalidTransitionError,
    NotFoundError,
    Outcome,
    PermissionDeniedError,
    ValidationError,
)

T = TypeVar("T")

STATUS_CODES = {
    ValidationError: 422,
    GeometryDegenerate: 422,
    NotFoundError: 404,
    PermissionDeniedError: 403,
    ConflictError: 409,
    InvalidTransitionError: 409,
    CollaboratorUnavailable: 503,
}


def unwrap(outcome: Outcome[T]) -> T:
    """Return the value of a successful outcome, else raise ``HTTPException``."""
    if outcome.ok:
        return outcome.value
    status = STATUS_CODES.get(type(outcome.error), 500)
    raise HTTPException(status_code=status, detail=outcome.message)
