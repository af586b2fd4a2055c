"""In-run consolidation of duplicate event rows."""
import logging
from dataclasses import replace
from typing import Dict, List, Optional

from processor.dates import format_iso_no_ms
from processor.models import EventRow

logger = logging.getLogger(__name__)

KEY_SEPARATOR = '|'


def normalize_text(value: Optional[str]) -> str:
    return (value or '').strip().lower()


def build_dedupe_key(title: str, start_date_iso: str, location: Optional[str]) -> str:
    """
    Build the composite key under which two rows count as the same event.

    Args:
        title: Event title
        start_date_iso: ISO 8601 start timestamp; only the date part is used
        location: Composed location string, may be None

    Returns:
        ``title|YYYY-MM-DD|location`` with title and location lowercased
        and trimmed
    """
    return KEY_SEPARATOR.join([
        normalize_text(title),
        start_date_iso[:10],
        normalize_text(location)
    ])


def dedupe_key_for(row: EventRow) -> str:
    return build_dedupe_key(row.title, format_iso_no_ms(row.start_date), row.location)


def merge_rows(existing: EventRow, incoming: EventRow) -> EventRow:
    """
    Merge a duplicate into the accumulated row, returning a new row.

    Earliest start and latest end win, the longer description wins, image
    and booking URL are only adopted when missing. Every other field keeps
    the first-seen value.
    """
    start_date = min(existing.start_date, incoming.start_date)

    if existing.end_date and incoming.end_date:
        end_date = max(existing.end_date, incoming.end_date)
    else:
        end_date = existing.end_date or incoming.end_date

    description = existing.description
    if incoming.description and (
        not description or len(incoming.description) > len(description)
    ):
        description = incoming.description

    return replace(
        existing,
        start_date=start_date,
        end_date=end_date,
        description=description,
        image=existing.image or incoming.image,
        booking_url=existing.booking_url or incoming.booking_url
    )


def consolidate(rows: List[EventRow]) -> List[EventRow]:
    """
    Collapse rows sharing a dedupe key into one row each.

    Output keeps the order in which each key was first seen.

    Args:
        rows: Mapped rows from every locality of a run

    Returns:
        Deduplicated rows
    """
    merged: Dict[str, EventRow] = {}
    for row in rows:
        key = dedupe_key_for(row)
        if key in merged:
            merged[key] = merge_rows(merged[key], row)
        else:
            merged[key] = row

    logger.info(f"Consolidation: {len(rows)} mapped -> {len(merged)} unique events")
    return list(merged.values())
