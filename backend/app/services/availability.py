from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from backend.app.core.clock import local_to_utc, local_today
from backend.app.core.config import settings
from backend.app.core.errors import NotFound
from backend.app.db.records import Workspace
from backend.app.db.store import BookingStore
from backend.app.services.occupancy import SliceOccupancy, aggregate_occupancy
from backend.app.services.slot_grid import workspace_slot_grid


@dataclass(frozen=True)
class SlotAvailability:
    slot: time
    starts_at: datetime
    occupied: int
    remaining: int
    disabled: bool
    durations: tuple[int, ...]

    @property
    def bookable(self) -> bool:
        return not self.disabled and bool(self.durations)


@dataclass(frozen=True)
class DayAvailability:
    workspace: Workspace
    day: date
    slots: list[SlotAvailability]

    def offered(self) -> list[tuple[time, tuple[int, ...]]]:
        return [(s.slot, s.durations) for s in self.slots if s.bookable]


def filter_availability(
    day: date,
    occupancy: Sequence[SliceOccupancy],
    quantity: int,
    closes_at: time,
    now: datetime,
    granularity_minutes: int = settings.SLOT_GRANULARITY_MINUTES,
    min_hours: int = settings.MIN_BOOKING_HOURS,
) -> list[SlotAvailability]:
    """
    Decide per slice whether a booking can start there and for how many hours.

    ``occupancy`` must be the contiguous grid for ``day``. A duration is offered
    only if every slice it covers has a spare unit; once one duration fails,
    every longer one fails too, so the scan stops there.
    """
    if 60 % granularity_minutes:
        raise ValueError("granularity_minutes must divide an hour")
    per_hour = 60 // granularity_minutes
    closing = local_to_utc(day, closes_at)

    results = []
    for index, current in enumerate(occupancy):
        disabled = current.starts_at <= now or current.occupied >= quantity
        durations: list[int] = []
        if not disabled:
            max_hours = int((closing - current.starts_at) // timedelta(hours=1))
            for hours in range(1, max_hours + 1):
                span = occupancy[index:index + hours * per_hour]
                if len(span) < hours * per_hour or any(s.occupied >= quantity for s in span):
                    break
                if hours >= min_hours:
                    durations.append(hours)

        results.append(
            SlotAvailability(
                slot=current.slot,
                starts_at=current.starts_at,
                occupied=current.occupied,
                remaining=max(quantity - current.occupied, 0),
                disabled=disabled,
                durations=tuple(durations),
            )
        )
    return results


async def get_day_availability(
    store: BookingStore,
    workspace_id: int,
    day: date,
    now: datetime,
) -> DayAvailability:
    """Grid, occupancy and filter for one workspace and local day."""
    workspace = await store.get_workspace(workspace_id)
    if workspace is None:
        raise NotFound(f"Workspace {workspace_id} not found")

    slots = workspace_slot_grid(workspace, day, today=local_today(now))
    occupancy = await aggregate_occupancy(store, workspace, day, slots)
    return DayAvailability(
        workspace=workspace,
        day=day,
        slots=filter_availability(day, occupancy, workspace.quantity, workspace.closes_at, now),
    )
