"""UTC clock helpers. Report ids are derived from the UTC calendar day."""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Current timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Current UTC calendar day."""
    return utc_now().date()
