"""UTC-everywhere time handling. Eliminates timezone bugs at the source."""

from datetime import date, datetime, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def today_utc() -> date:
    """Current calendar date in UTC. Ledger dates have no time of day."""
    return now_utc().date()


def parse_date(value: str) -> date:
    """
    Parse an ISO 8601 calendar date (YYYY-MM-DD).

    Raises ValueError for anything else, including datetimes.
    """
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Invalid date '{value}'. Expected YYYY-MM-DD.")
