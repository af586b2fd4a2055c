"""Data models for event ingestion."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

SOURCE_TAG = 'ticketmaster'
EVENT_TYPE = 'event'


@dataclass(frozen=True)
class EventRow:
    """Normalized event row as persisted in the events table."""
    title: str
    business_id: str
    created_by: str
    start_date: datetime
    end_date: Optional[datetime]
    location: Optional[str]
    description: Optional[str]
    image: Optional[str]
    booking_url: Optional[str]
    type: str = EVENT_TYPE
    icon: str = SOURCE_TAG
    price: None = None
    rating: int = 0
    booking_contact: None = None
    availability_status: Optional[str] = None


@dataclass(frozen=True)
class FetchWindow:
    """Start/end datetime window for a provider search."""
    start: datetime
    end: datetime


@dataclass
class LocalityFetchResult:
    """Outcome of fetching one locality; error is set when it failed."""
    locality: str
    records: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchFailure:
    """Details of a failed merge batch."""
    batch: int
    rows: int
    message: str
    code: Optional[str] = None
    details: Optional[str] = None
    hint: Optional[str] = None


@dataclass
class UpsertResult:
    """Result of an upsert across all batches."""
    inserted: int
    updated: int
    failed: int
    batch_failures: List[BatchFailure] = field(default_factory=list)


@dataclass
class IngestMetrics:
    """Aggregate metrics record logged once per run."""
    source: str
    fetched: int
    mapped: int
    consolidated: int
    inserted: int
    updated: int
    failed: int
    attributed_identity: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'fetched': self.fetched,
            'mapped': self.mapped,
            'consolidated': self.consolidated,
            'inserted': self.inserted,
            'updated': self.updated,
            'failed': self.failed,
            'attributed_identity': self.attributed_identity,
        }
