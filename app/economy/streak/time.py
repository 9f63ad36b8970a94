from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.economy.streak.constants import DEFAULT_REFERENCE_TIMEZONE


def to_calendar_day(instant: datetime, reference_tz: tzinfo) -> date:
    """Converts an instant to the calendar day it falls on in the reference timezone."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(reference_tz).date()


def day_difference(later: date, earlier: date) -> int:
    """Returns whole calendar days from ``earlier`` to ``later`` (negative if reversed)."""
    return (later - earlier).days


def resolve_reference_timezone(name: str | None, *, default: str = DEFAULT_REFERENCE_TIMEZONE) -> tzinfo | None:
    """Returns the tzinfo for an IANA name, or None when the name is unknown."""
    candidate = (name or "").strip() or default
    if candidate.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None
