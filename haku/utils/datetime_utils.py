"""DateTime utility functions for Haku."""

from datetime import datetime, timedelta, timezone

from pydantic import TypeAdapter, ValidationError

_datetime_adapter = TypeAdapter(datetime)


def now_iso() -> str:
    """
    Current UTC time as an ISO-8601 timestamp with millisecond precision.

    Returns:
        String like "2026-02-01T01:00:00.000Z"
    """
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def today_iso_date() -> str:
    """Current UTC date as YYYY-MM-DD."""
    return datetime.now(timezone.utc).date().isoformat()


def is_iso_timestamp(value: str) -> bool:
    """
    Check whether a string is a well-formed ISO-8601 timestamp.

    Parsed with pydantic's datetime rules: fractional seconds, "Z" and
    offsets are accepted on every supported Python version.

    Args:
        value: Candidate timestamp

    Returns:
        True if the string parses as an ISO-8601 date-time
    """
    if "T" not in value:
        return False
    try:
        _datetime_adapter.validate_python(value)
    except ValidationError:
        return False
    return True


def is_iso_date(value: str) -> bool:
    """Check whether a string is a calendar date in YYYY-MM-DD form."""
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return len(value) == 10


def week_dates(week_start_date: str) -> list[str]:
    """
    List the seven consecutive dates starting at the given date.

    Args:
        week_start_date: First day of the week as YYYY-MM-DD

    Returns:
        Seven YYYY-MM-DD strings
    """
    start = datetime.strptime(week_start_date, "%Y-%m-%d")
    return [(start + timedelta(days=offset)).date().isoformat() for offset in range(7)]
