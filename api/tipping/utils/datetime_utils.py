"""Datetime helpers.

All timestamps stored and compared by the service are timezone-aware UTC.
Fixture dates and Squiggle "localtime" strings are interpreted in Melbourne
time when they carry no offset.
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

MELBOURNE = ZoneInfo("Australia/Melbourne")


def now_utc() -> datetime:
    """Get the current time in UTC, timezone-aware."""
    return datetime.now(timezone.utc)


def today_utc() -> date:
    """Return the current date in UTC timezone."""
    return now_utc().date()


def ensure_utc(value: datetime | None) -> datetime | None:
    """Normalise a datetime to aware UTC.

    SQLite hands back naive datetimes for ``DateTime(timezone=True)`` columns;
    those are treated as already being UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def melbourne_date(value: datetime) -> date:
    """Calendar date of a UTC instant as seen in Melbourne."""
    return ensure_utc(value).astimezone(MELBOURNE).date()
