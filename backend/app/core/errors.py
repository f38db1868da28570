"""
Booking error taxonomy and its mapping onto HTTP responses.

Services raise these; routers call ``booking_error_to_http`` so every endpoint
reports the same reason for the same failure.
"""
from __future__ import annotations

from fastapi import HTTPException, status


class BookingError(Exception):
    """Base class for failures the booking core reports to its caller."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Malformed request, rejected before any store call."""


class CapacityConflict(BookingError):
    """No spare unit remains for the requested span at commit time."""


class InvalidTransition(BookingError):
    """Lifecycle change requested from a status that does not allow it."""

    def __init__(self, booking_id: int, current: str, target: str) -> None:
        super().__init__(f"Booking {booking_id} is {current} and cannot become {target}")
        self.booking_id = booking_id
        self.current = current
        self.target = target


class NotFound(BookingError):
    """Referenced workspace or booking does not exist."""


class StoreUnavailable(BookingError):
    """The record store failed or timed out. Safe to retry."""


MSG_CAPACITY_CONFLICT = "This time is no longer available, please choose another time"
MSG_STORE_UNAVAILABLE = "Booking service is temporarily unavailable, please try again"

# (error class, status code, fixed detail or None to use the error's message).
# First match wins.
ERROR_RULES: list[tuple[type[BookingError], int, str | None]] = [
    (CapacityConflict, status.HTTP_409_CONFLICT, MSG_CAPACITY_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT, None),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY, None),
    (NotFound, status.HTTP_404_NOT_FOUND, None),
    (StoreUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE, MSG_STORE_UNAVAILABLE),
]


def booking_error_to_http(exc: BookingError) -> HTTPException:
    """Translate a booking error into the HTTPException a router should raise."""
    for error_cls, status_code, detail in ERROR_RULES:
        if isinstance(exc, error_cls):
            return HTTPException(status_code=status_code, detail=detail or exc.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
