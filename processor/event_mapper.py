"""Mapper from raw Ticketmaster records to normalized event rows."""
import logging
from typing import Any, Dict, List, Optional

from processor.dates import parse_iso, parse_local_date
from processor.models import EventRow

logger = logging.getLogger(__name__)

PLACEHOLDER_TITLE = 'Untitled event'
LOCATION_SEPARATOR = ' • '
TAG_SEPARATOR = ' · '
DESCRIPTION_SEPARATOR = ' — '
GENERIC_TAGS = {'Undefined', 'Other'}
SOLD_OUT_STATUS_CODES = {'offsale', 'cancelled'}


class EventMapper:
    """Maps Ticketmaster event records onto EventRow values."""

    def __init__(self, business_id: str, created_by: str):
        """
        Initialize the mapper.

        Args:
            business_id: Owning business record for every mapped row
            created_by: Attributed user identity for every mapped row
        """
        self.business_id = business_id
        self.created_by = created_by

    def map_records(self, records: List[Dict[str, Any]]) -> List[EventRow]:
        """
        Map a list of raw records, dropping the unusable ones.

        Args:
            records: Raw Ticketmaster event records

        Returns:
            List of EventRow objects
        """
        rows = []
        for record in records:
            row = self.map_record(record)
            if row is not None:
                rows.append(row)

        return rows

    def map_record(self, record: Dict[str, Any]) -> Optional[EventRow]:
        """
        Map a single raw record.

        Args:
            record: Raw Ticketmaster event record

        Returns:
            EventRow, or None if the record has no start date or is malformed
        """
        try:
            return self._map(record)
        except Exception as e:
            name = (record.get('name') or record.get('id')) if isinstance(record, dict) else record
            logger.warning(f"Skipping malformed event '{name}': {e}")
            return None

    def _map(self, record: Dict[str, Any]) -> Optional[EventRow]:
        dates = record.get('dates') or {}
        start_date = resolve_start(dates)
        if start_date is None:
            logger.debug(f"Dropping event '{record.get('name')}' without a start date")
            return None

        end_date = resolve_end(dates, start_date)
        if end_date < start_date:
            end_date = start_date

        venue = first_venue(record)
        city = (venue.get('city') or {}).get('name')
        country = (venue.get('country') or {}).get('name')

        return EventRow(
            title=(record.get('name') or '').strip() or PLACEHOLDER_TITLE,
            business_id=self.business_id,
            created_by=self.created_by,
            start_date=start_date,
            end_date=end_date,
            location=build_location(venue.get('name'), city, country),
            description=build_description(record),
            image=pick_widest_image(record.get('images')),
            booking_url=record.get('url') or None,
            availability_status=resolve_availability(dates)
        )


def first_venue(record: Dict[str, Any]) -> Dict[str, Any]:
    venues = (record.get('_embedded') or {}).get('venues') or []
    return venues[0] if venues else {}


def resolve_start(dates: Dict[str, Any]):
    """Exact start datetime, else the start date at midnight UTC."""
    start = dates.get('start') or {}
    if start.get('dateTime'):
        return parse_iso(start['dateTime'])
    return parse_local_date(start.get('localDate'), '00:00:00')


def resolve_end(dates: Dict[str, Any], fallback_start):
    """Exact end datetime, else the end date at 23:59:59 UTC, else the start."""
    end = dates.get('end') or {}
    if end.get('dateTime'):
        return parse_iso(end['dateTime'])
    if end.get('localDate'):
        return parse_local_date(end['localDate'], '23:59:59')
    return fallback_start


def resolve_availability(dates: Dict[str, Any]) -> Optional[str]:
    code = ((dates.get('status') or {}).get('code') or '').lower()
    return 'sold_out' if code in SOLD_OUT_STATUS_CODES else None


def build_location(venue: Optional[str], city: Optional[str], country: Optional[str]) -> Optional[str]:
    """
    Join the non-empty venue, city and country parts.

    Returns:
        Location string, or None when every part is empty
    """
    parts = [p.strip() for p in (venue, city, country) if isinstance(p, str) and p.strip()]
    return LOCATION_SEPARATOR.join(parts) if parts else None


def build_description(record: Dict[str, Any]) -> Optional[str]:
    """
    Build a description from info, description, or classification tags.

    Returns:
        Description text, or None if nothing usable is present
    """
    for key in ('info', 'description'):
        text = (record.get(key) or '').strip()
        if text:
            return text

    parts = []
    classifications = record.get('classifications') or []
    if classifications:
        cls = classifications[0]
        tags = [
            (cls.get(k) or {}).get('name')
            for k in ('segment', 'genre', 'subGenre')
        ]
        tags = [t for t in tags if t and t not in GENERIC_TAGS]
        if tags:
            parts.append(TAG_SEPARATOR.join(tags))

    venue_name = first_venue(record).get('name')
    if venue_name:
        parts.append(f"at {venue_name}")

    return DESCRIPTION_SEPARATOR.join(parts) if parts else None


def pick_widest_image(images: Optional[List[Dict[str, Any]]]) -> Optional[str]:
    """Return the URL of the widest image, or None if there are none."""
    if not images:
        return None
    best = images[0]
    for image in images:
        if (image.get('width') or 0) > (best.get('width') or 0):
            best = image
    return best.get('url') or None
