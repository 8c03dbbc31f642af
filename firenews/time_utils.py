"""Timezone helpers for date boundary logic."""

from __future__ import annotations

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

PACIFIC = ZoneInfo("America/Los_Angeles")


def utc_now() -> datetime:
    """Return the current instant as an aware UTC datetime."""
    return datetime.now(tz=UTC)


def civil_date(instant: datetime, tz: ZoneInfo = PACIFIC) -> date:
    """Return the calendar date of an instant in the given zone.

    Naive datetimes are interpreted as UTC.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(tz).date()


def date_label(instant: datetime, tz: ZoneInfo = PACIFIC) -> str:
    """Format an instant as a human date label, e.g. "February 20, 2026"."""
    day = civil_date(instant, tz)
    return f"{day:%B} {day.day}, {day.year}"
