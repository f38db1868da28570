"""
Status transitions for existing bookings.

confirmed -> checked_in -> completed, confirmed -> cancelled, and
confirmed -> no_show through the periodic sweep. Each transition is a single
guarded UPDATE, so a booking that moved on in the meantime is left untouched.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from backend.app.core.errors import InvalidTransition, NotFound
from backend.app.db.records import Booking, BookingStatus
from backend.app.db.store import BookingStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Transition:
    target: BookingStatus
    allowed_from: tuple[BookingStatus, ...]
    timestamp_column: str | None = None


CHECK_IN = Transition(BookingStatus.CHECKED_IN, (BookingStatus.CONFIRMED,), "checked_in_at")
CHECK_OUT = Transition(BookingStatus.COMPLETED, (BookingStatus.CHECKED_IN,), "checked_out_at")
CANCEL = Transition(BookingStatus.CANCELLED, (BookingStatus.CONFIRMED,))


async def apply_transition(
    store: BookingStore,
    booking_id: int,
    transition: Transition,
    now: datetime,
) -> Booking:
    updated = await store.transition_booking(
        booking_id,
        transition.allowed_from,
        transition.target,
        timestamp_column=transition.timestamp_column,
        at=now if transition.timestamp_column else None,
    )
    if updated is not None:
        logger.info(
            "booking_transitioned",
            booking_id=booking_id,
            status=updated.status.value,
        )
        return updated

    current = await store.get_booking(booking_id)
    if current is None:
        raise NotFound(f"Booking {booking_id} not found")
    logger.warning(
        "booking_transition_rejected",
        booking_id=booking_id,
        current=current.status.value,
        target=transition.target.value,
    )
    raise InvalidTransition(booking_id, current.status.value, transition.target.value)


async def check_in(store: BookingStore, booking_id: int, now: datetime) -> Booking:
    return await apply_transition(store, booking_id, CHECK_IN, now)


async def check_out(store: BookingStore, booking_id: int, now: datetime) -> Booking:
    return await apply_transition(store, booking_id, CHECK_OUT, now)


async def cancel(store: BookingStore, booking_id: int, now: datetime) -> Booking:
    return await apply_transition(store, booking_id, CANCEL, now)


@dataclass
class SweepResult:
    swept_at: datetime
    booking_ids: list[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.booking_ids)


async def sweep_no_shows(store: BookingStore, now: datetime) -> SweepResult:
    """
    Mark confirmed bookings that started before ``now`` without a check-in as no_show.

    Re-running is harmless: swept rows are no longer confirmed, and checked-in
    or terminal rows never match.
    """
    swept: Iterable[Booking] = await store.mark_no_shows(now)
    result = SweepResult(swept_at=now, booking_ids=sorted(b.id for b in swept))
    for booking_id in result.booking_ids:
        logger.info("booking_marked_no_show", booking_id=booking_id)
    logger.info("no_show_sweep_finished", swept=result.count, at=now.isoformat())
    return result
