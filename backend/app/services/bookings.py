from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

import structlog

from backend.app.core.clock import local_to_utc, local_today
from backend.app.core.config import settings
from backend.app.core.errors import CapacityConflict, NotFound, ValidationError
from backend.app.db.records import (
    OCCUPYING_STATUSES,
    Booking,
    GuestRequester,
    NewBooking,
    Requester,
    UserRequester,
)
from backend.app.db.store import BookingStore
from backend.app.services.occupancy import peak_concurrency
from backend.app.services.slot_grid import is_on_grid

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BookingRequest:
    workspace_id: int
    day: date
    start_time: time
    duration_hours: int
    requester: Requester | None

    @property
    def starts_at(self) -> datetime:
        return local_to_utc(self.day, self.start_time)

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(hours=self.duration_hours)


def validate_request(request: BookingRequest) -> None:
    """Shape checks that need no store access."""
    if request.start_time.tzinfo is not None:
        raise ValidationError("Start time must be a local wall-clock time without an offset")
    if isinstance(request.duration_hours, bool) or not isinstance(request.duration_hours, int):
        raise ValidationError("Duration must be a whole number of hours")
    if request.duration_hours < settings.MIN_BOOKING_HOURS:
        raise ValidationError(
            f"Duration must be at least {settings.MIN_BOOKING_HOURS} hour(s)"
        )
    if request.requester is None:
        raise ValidationError("A signed-in user or guest name and phone number is required")
    if isinstance(request.requester, GuestRequester):
        if not request.requester.name.strip():
            raise ValidationError("Guest name is required")
        if not request.requester.phone.strip():
            raise ValidationError("Guest phone number is required")
    elif isinstance(request.requester, UserRequester):
        if not request.requester.user_id.strip():
            raise ValidationError("User identity is empty")
    if request.start_time.second or request.start_time.microsecond:
        raise ValidationError("Start time must fall on a slot boundary")


async def create_booking(store: BookingStore, request: BookingRequest, now: datetime) -> Booking:
    """
    Validate a final selection, re-check capacity and commit a confirmed booking.

    The capacity figure shown by the availability endpoint is advisory; the
    read here is fresh and ``commit_booking()`` repeats it atomically with the
    insert.
    """
    validate_request(request)
    starts_at, ends_at = request.starts_at, request.ends_at
    if starts_at <= now:
        raise ValidationError("Start time is in the past")

    workspace = await store.get_workspace(request.workspace_id)
    if workspace is None:
        raise NotFound(f"Workspace {request.workspace_id} not found")
    if workspace.is_archived:
        raise ValidationError(f"{workspace.name} is no longer bookable")

    today = local_today(now)
    if request.day > today + timedelta(days=settings.BOOKING_HORIZON_DAYS):
        raise ValidationError(
            f"Bookings open {settings.BOOKING_HORIZON_DAYS} days in advance"
        )
    if not is_on_grid(request.start_time, workspace.opens_at, settings.SLOT_GRANULARITY_MINUTES):
        raise ValidationError("Start time must fall on a slot boundary")

    if (
        request.start_time < workspace.opens_at
        or ends_at > local_to_utc(request.day, workspace.closes_at)
    ):
        raise ValidationError(
            f"{workspace.name} is open {workspace.opens_at:%H:%M}-{workspace.closes_at:%H:%M}"
        )

    existing = await store.select_bookings(workspace.id, starts_at, ends_at, OCCUPYING_STATUSES)
    if peak_concurrency(existing, starts_at, ends_at) >= workspace.quantity:
        logger.info(
            "booking_rejected_capacity",
            workspace_id=workspace.id,
            starts_at=starts_at.isoformat(),
            ends_at=ends_at.isoformat(),
        )
        raise CapacityConflict("Capacity exceeded")

    user_id: str | None = None
    guest_id: int | None = None
    if isinstance(request.requester, UserRequester):
        user_id = request.requester.user_id
    else:
        guest = await store.find_guest_by_phone(request.requester.phone)
        if guest is None:
            guest = await store.insert_guest(request.requester.name, request.requester.phone)
            logger.info("guest_created", guest_id=guest.id)
        guest_id = guest.id

    booking = await store.commit_booking(
        NewBooking(
            workspace_id=workspace.id,
            starts_at=starts_at,
            ends_at=ends_at,
            price=workspace.price_per_hour * request.duration_hours,
            user_id=user_id,
            guest_id=guest_id,
        )
    )
    logger.info(
        "booking_committed",
        booking_id=booking.id,
        workspace_id=workspace.id,
        starts_at=booking.starts_at.isoformat(),
        ends_at=booking.ends_at.isoformat(),
        requester="user" if user_id else "guest",
    )
    return booking
