from datetime import date, datetime, time, timedelta

from backend.app.core.config import settings
from backend.app.db.records import Workspace


def build_slot_grid(
    day: date,
    opens_at: time,
    closes_at: time,
    *,
    today: date,
    granularity_minutes: int = settings.SLOT_GRANULARITY_MINUTES,
    horizon_days: int = settings.BOOKING_HORIZON_DAYS,
) -> tuple[time, ...]:
    """
    Local start times offered on ``day``, every ``granularity_minutes`` from
    ``opens_at`` up to but not including ``closes_at``.

    Empty when the opening window is empty or ``day`` lies before ``today`` or
    past the booking horizon.
    """
    if granularity_minutes <= 0:
        raise ValueError("granularity_minutes must be positive")
    if day < today or day > today + timedelta(days=horizon_days):
        return ()
    if opens_at >= closes_at:
        return ()

    step = timedelta(minutes=granularity_minutes)
    cursor = datetime.combine(day, opens_at)
    closing = datetime.combine(day, closes_at)
    slots = []
    while cursor < closing:
        slots.append(cursor.time())
        cursor += step
    return tuple(slots)


def workspace_slot_grid(workspace: Workspace, day: date, *, today: date) -> tuple[time, ...]:
    if workspace.is_archived:
        return ()
    return build_slot_grid(day, workspace.opens_at, workspace.closes_at, today=today)


def is_on_grid(at: time, opens_at: time, granularity_minutes: int) -> bool:
    offset = datetime.combine(date.min, at) - datetime.combine(date.min, opens_at)
    return offset >= timedelta(0) and offset % timedelta(minutes=granularity_minutes) == timedelta(0)
