"""UTC timestamp helpers shared by the fetcher, mapper and store."""
from datetime import datetime, timezone
from typing import Optional

ISO_FORMAT = '%Y-%m-%dT%H:%M:%SZ'


def format_iso_no_ms(value: datetime) -> str:
    """
    Format a datetime as ISO 8601 UTC without fractional seconds.

    Ticketmaster rejects timestamps with milliseconds. Stored timestamps
    are compared as strings, so they must all use this format.

    Args:
        value: Aware or naive (assumed UTC) datetime

    Returns:
        String such as ``2025-06-01T18:00:00Z``
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(ISO_FORMAT)


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO 8601 datetime string into an aware UTC datetime.

    Args:
        value: String like ``2025-06-01T18:00:00Z`` or with an offset

    Returns:
        Aware UTC datetime, or None for empty input
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_local_date(value: Optional[str], time_of_day: str) -> Optional[datetime]:
    """Interpret a ``YYYY-MM-DD`` date at a fixed UTC time of day."""
    if not value:
        return None
    return parse_iso(f"{value.strip()}T{time_of_day}Z")
