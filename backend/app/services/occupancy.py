from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

import structlog

from backend.app.core.clock import local_day_bounds, local_to_utc
from backend.app.core.config import settings
from backend.app.db.records import OCCUPYING_STATUSES, Booking, Workspace
from backend.app.db.store import BookingStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SliceOccupancy:
    slot: time
    starts_at: datetime  # UTC
    ends_at: datetime    # UTC
    occupied: int


def count_slice_occupancy(
    day: date,
    slots: Sequence[time],
    bookings: Sequence[Booking],
    granularity_minutes: int = settings.SLOT_GRANULARITY_MINUTES,
) -> list[SliceOccupancy]:
    """How many bookings overlap each ``[slot, slot + granularity)`` slice, in UTC."""
    step = timedelta(minutes=granularity_minutes)
    result = []
    for slot in slots:
        start = local_to_utc(day, slot)
        end = start + step
        occupied = sum(1 for booking in bookings if booking.overlaps(start, end))
        result.append(SliceOccupancy(slot=slot, starts_at=start, ends_at=end, occupied=occupied))
    return result


def peak_concurrency(bookings: Sequence[Booking], start: datetime, end: datetime) -> int:
    """
    Largest number of bookings active at any single instant of ``[start, end)``.

    Concurrency only rises at ``start`` or where a booking begins, so those
    are the only instants checked.
    """
    overlapping = [b for b in bookings if b.overlaps(start, end)]
    points = {start} | {b.starts_at for b in overlapping if start < b.starts_at < end}
    return max(
        (sum(1 for b in overlapping if b.starts_at <= point < b.ends_at) for point in points),
        default=0,
    )


async def load_day_bookings(store: BookingStore, workspace: Workspace, day: date) -> list[Booking]:
    """One read: occupying bookings on the workspace that touch the local day."""
    window_start, window_end = local_day_bounds(day)
    bookings = await store.select_bookings(workspace.id, window_start, window_end, OCCUPYING_STATUSES)
    logger.debug(
        "occupancy_loaded",
        workspace_id=workspace.id,
        day=day.isoformat(),
        bookings=len(bookings),
    )
    return bookings


async def aggregate_occupancy(
    store: BookingStore,
    workspace: Workspace,
    day: date,
    slots: Sequence[time],
) -> list[SliceOccupancy]:
    if not slots:
        return []
    bookings = await load_day_bookings(store, workspace, day)
    return count_slice_occupancy(day, slots, bookings)
