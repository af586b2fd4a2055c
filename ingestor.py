"""Orchestrator for one Ticketmaster ingestion run."""
import enum
import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import boto3

from config import IngestConfig
from fetcher.ticketmaster_client import TicketmasterClient
from processor.consolidator import consolidate
from processor.errors import IdentityResolutionError, IngestRunError
from processor.event_mapper import EventMapper
from processor.models import (
    SOURCE_TAG,
    EventRow,
    FetchWindow,
    IngestMetrics,
    LocalityFetchResult,
    UpsertResult,
)
from storage.events_gateway import EventsGateway
from storage.identity_store import IdentityStore

logger = logging.getLogger(__name__)


class RunState(enum.Enum):
    IDLE = 'idle'
    RUNNING = 'running'


class IngestOrchestrator:
    """
    Sequences fetch, map, consolidate and upsert for every configured city.

    Only one run is active at a time. ``trigger`` while a run is in flight
    is a no-op: nothing is queued or retried.
    """

    LOCALITY_DELAY_SECONDS = 1.0

    def __init__(
        self,
        config: IngestConfig,
        client: TicketmasterClient,
        gateway: EventsGateway,
        identity_store: IdentityStore,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = None
    ):
        self.config = config
        self.client = client
        self.gateway = gateway
        self.identity_store = identity_store
        self.sleep = sleep
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._state = RunState.IDLE

    @classmethod
    def from_config(cls, config: IngestConfig) -> 'IngestOrchestrator':
        """Build an orchestrator wired to the real API and DynamoDB tables."""
        dynamodb = boto3.resource('dynamodb')
        return cls(
            config=config,
            client=TicketmasterClient(
                api_key=config.api_key,
                country_code=config.country_code,
                timeout=config.timeout_seconds
            ),
            gateway=EventsGateway(config.events_table_name, dynamodb=dynamodb),
            identity_store=IdentityStore(
                config.users_table_name,
                config.businesses_table_name,
                dynamodb=dynamodb
            )
        )

    @property
    def state(self) -> RunState:
        return self._state

    def trigger(self, raise_errors: bool = False) -> Optional[IngestMetrics]:
        """
        Start a run unless one is already active.

        Args:
            raise_errors: Re-raise run errors after logging them instead of
                swallowing them

        Returns:
            IngestMetrics for a completed run, None if the trigger was
            skipped or the run failed (with raise_errors False)
        """
        if not self._lock.acquire(blocking=False):
            logger.warning("Previous ingest still running. Skipping this cycle.")
            return None

        self._state = RunState.RUNNING
        start_time = time.time()
        logger.info("=== Ticketmaster ingest starting ===")

        try:
            return self._run()
        except Exception as e:
            logger.error(
                f"Ingest failed: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            if raise_errors:
                raise
            return None
        finally:
            self._state = RunState.IDLE
            self._lock.release()
            logger.info(f"=== Ingest complete in {time.time() - start_time:.1f}s ===")

    def _run(self) -> IngestMetrics:
        logger.info("Testing events store connection...")
        self.gateway.check_connection()

        self.gateway.cleanup(self.config.retention_days)

        created_by = self.resolve_attribution_identity()
        logger.info(f"Using created_by user id: {created_by}")

        now = self.clock()
        window = FetchWindow(
            start=now,
            end=now + timedelta(days=self.config.fetch_window_days)
        )
        mapper = EventMapper(self.config.business_id, created_by)

        results = []
        rows: List[EventRow] = []
        for index, city in enumerate(self.config.cities):
            result = self.fetch_locality(city, window)
            results.append(result)
            if result.ok:
                mapped = mapper.map_records(result.records)
                logger.info(
                    f"Mapped {len(mapped)} valid events out of "
                    f"{len(result.records)} for {city}"
                )
                rows.extend(mapped)

            if index < len(self.config.cities) - 1:
                self.sleep(self.LOCALITY_DELAY_SECONDS)

        fetched = sum(len(r.records) for r in results)
        failed_cities = [r.locality for r in results if not r.ok]
        if failed_cities:
            logger.warning(f"Skipped cities after fetch failures: {', '.join(failed_cities)}")

        consolidated = consolidate(rows)
        logger.info(
            f"Fetch complete: {fetched} fetched, {len(rows)} mapped, "
            f"{len(consolidated)} consolidated."
        )

        if consolidated:
            upsert_result = self.gateway.upsert(consolidated)
        else:
            upsert_result = UpsertResult(inserted=0, updated=0, failed=0)

        metrics = IngestMetrics(
            source=SOURCE_TAG,
            fetched=fetched,
            mapped=len(rows),
            consolidated=len(consolidated),
            inserted=upsert_result.inserted,
            updated=upsert_result.updated,
            failed=upsert_result.failed,
            attributed_identity=created_by
        )

        if upsert_result.batch_failures:
            logger.error(
                "Ticketmaster upsert failed with batch errors",
                extra={
                    'metrics': metrics.as_dict(),
                    'batch_failures': [vars(f) for f in upsert_result.batch_failures]
                }
            )
            raise IngestRunError(
                f"Ticketmaster upsert failed with "
                f"{len(upsert_result.batch_failures)} batch error(s).",
                batch_failures=upsert_result.batch_failures
            )

        logger.info("Ticketmaster ingest complete", extra={'metrics': metrics.as_dict()})
        return metrics

    def fetch_locality(self, city: str, window: FetchWindow) -> LocalityFetchResult:
        """Fetch one city, capturing a failure as a result instead of raising."""
        logger.info(f"Fetching events for {city}...")
        try:
            records = self.client.fetch_locality_events(city, window, self.config.page_size)
        except Exception as e:
            logger.error(f"Failed to fetch events for {city}: {e}")
            return LocalityFetchResult(locality=city, error=str(e))

        logger.info(f"Fetched {len(records)} raw events for {city}")
        return LocalityFetchResult(locality=city, records=records)

    def resolve_attribution_identity(self) -> str:
        """
        Pick the user recorded as creator of ingested rows.

        The configured user wins when it exists; otherwise the owner of the
        system business is used.

        Raises:
            IdentityResolutionError: If neither resolves to an existing user
        """
        preferred = self.config.preferred_user_id
        if preferred:
            if self.identity_store.user_exists(preferred):
                return preferred.strip()
            logger.warning(
                f"SYSTEM_USER_ID {preferred} does not exist; "
                f"falling back to the owner of business {self.config.business_id}"
            )

        owner = self.identity_store.get_business_owner(self.config.business_id)
        if owner and self.identity_store.user_exists(owner):
            return owner.strip()

        raise IdentityResolutionError(
            f"Could not resolve a valid created_by user: SYSTEM_USER_ID={preferred!r}, "
            f"owner of business {self.config.business_id}={owner!r}"
        )
