"""
Conversions between the business's local wall clock and stored UTC instants.

Every comparison in the booking core happens on timezone-aware UTC datetimes.
Local dates and times only enter through these helpers.
"""
from datetime import date, datetime, time, timedelta, timezone

from backend.app.core.config import settings

BUSINESS_TZ = timezone(timedelta(minutes=settings.BUSINESS_UTC_OFFSET_MINUTES))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_to_utc(day: date, at: time) -> datetime:
    """Instant at which the local clock shows ``at`` on ``day``."""
    return datetime.combine(day, at, tzinfo=BUSINESS_TZ).astimezone(timezone.utc)


def local_day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC half-open window ``[start, end)`` covering the local calendar day."""
    start = local_to_utc(day, time.min)
    return start, start + timedelta(days=1)


def local_today(now: datetime) -> date:
    return now.astimezone(BUSINESS_TZ).date()


def to_local(instant: datetime) -> datetime:
    return instant.astimezone(BUSINESS_TZ)
