"""Exception hierarchy for the events ingestor."""
from typing import List, Optional

from processor.models import BatchFailure


class IngestError(Exception):
    """Base exception for all ingestion failures."""


class ConfigError(IngestError):
    """Raised for missing or invalid runtime configuration."""


class TicketmasterAPIError(IngestError):
    """Raised when a Ticketmaster page cannot be fetched."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class StoreConnectionError(IngestError):
    """Raised when the events store cannot be reached."""


class IdentityResolutionError(IngestError):
    """Raised when no valid attribution identity can be resolved."""


class IngestRunError(IngestError):
    """Raised after a run whose upsert had failed batches."""

    def __init__(self, message: str, batch_failures: Optional[List[BatchFailure]] = None):
        super().__init__(message)
        self.batch_failures = batch_failures or []
