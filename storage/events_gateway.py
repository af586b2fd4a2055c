"""DynamoDB gateway for merging and cleaning up ingested events."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from processor.consolidator import dedupe_key_for
from processor.dates import format_iso_no_ms, parse_iso
from processor.errors import StoreConnectionError
from processor.models import EVENT_TYPE, SOURCE_TAG, BatchFailure, EventRow, UpsertResult

logger = logging.getLogger(__name__)

INSERTED = 'inserted'
UPDATED = 'updated'
SKIPPED = 'skipped'


class EventsGateway:
    """Persistence gateway for the events table."""

    BATCH_SIZE = 200
    KEY_ATTRIBUTE = 'dedupe_key'

    def __init__(self, table_name: str, dynamodb=None):
        """
        Initialize DynamoDB resource and table reference.

        Args:
            table_name: Name of the events DynamoDB table
            dynamodb: Optional boto3 DynamoDB resource to reuse
        """
        self.table_name = table_name
        self.dynamodb = dynamodb or boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized EventsGateway for table: {table_name}")

    def check_connection(self) -> None:
        """
        Verify the events table is reachable.

        Raises:
            StoreConnectionError: If the table cannot be described
        """
        try:
            self.table.load()
        except (ClientError, BotoCoreError) as e:
            raise StoreConnectionError(
                f"Events store connection test failed: {e}"
            ) from e
        logger.info(f"Connected to events table: {self.table_name}")

    def upsert(self, rows: List[EventRow]) -> UpsertResult:
        """
        Merge rows into the events table in batches of 200.

        A failing batch is recorded and the remaining batches still run.
        ``failed`` counts every row that was neither inserted nor updated:
        rows of failed batches plus rows rejected as incomplete or owned by
        another business.

        Args:
            rows: Consolidated rows to persist

        Returns:
            UpsertResult with totals and any batch failures
        """
        inserted = 0
        updated = 0
        batch_failures = []

        for i in range(0, len(rows), self.BATCH_SIZE):
            batch = rows[i:i + self.BATCH_SIZE]
            batch_number = i // self.BATCH_SIZE + 1

            try:
                batch_inserted, batch_updated = self.merge_batch(batch)
            except (ClientError, BotoCoreError) as e:
                failure = to_batch_failure(batch_number, len(batch), e)
                batch_failures.append(failure)
                logger.error(
                    f"Upsert batch {batch_number} failed: {failure.message}",
                    extra={
                        'batch': failure.batch,
                        'rows': failure.rows,
                        'code': failure.code,
                        'details': failure.details,
                        'hint': failure.hint
                    }
                )
                continue

            inserted += batch_inserted
            updated += batch_updated
            logger.info(
                f"Upsert batch {batch_number}: {batch_inserted} inserted, "
                f"{batch_updated} updated ({len(batch)} rows)"
            )

        failed = max(0, len(rows) - inserted - updated)
        rejected = failed - sum(f.rows for f in batch_failures)
        if rejected > 0:
            logger.warning(f"Rejected {rejected} row(s) that were incomplete or owned by another business")
        return UpsertResult(
            inserted=inserted,
            updated=updated,
            failed=failed,
            batch_failures=batch_failures
        )

    def merge_batch(self, rows: List[EventRow]) -> Tuple[int, int]:
        """
        Insert or merge each row of a batch under its natural key.

        Existing rows are only updated when they belong to the same
        business as the incoming row.

        Args:
            rows: Batch of rows

        Returns:
            Tuple of (inserted, updated) counts

        Raises:
            ClientError: If a store call fails
        """
        inserted = 0
        updated = 0
        for row in rows:
            if not is_storable(row):
                logger.warning(f"Skipping incomplete row '{row.title}'")
                continue
            outcome = self._merge_row(row)
            if outcome == INSERTED:
                inserted += 1
            elif outcome == UPDATED:
                updated += 1
        return inserted, updated

    def _merge_row(self, row: EventRow) -> str:
        item = row_to_item(row)
        key = {self.KEY_ATTRIBUTE: item[self.KEY_ATTRIBUTE]}

        existing = self.table.get_item(Key=key).get('Item')
        if existing is None:
            try:
                self.table.put_item(
                    Item=item,
                    ConditionExpression=Attr(self.KEY_ATTRIBUTE).not_exists()
                )
                return INSERTED
            except ClientError as e:
                if not is_conditional_failure(e):
                    raise
                existing = self.table.get_item(Key=key).get('Item')
                if existing is None:
                    raise

        if existing.get('business_id') != row.business_id:
            logger.warning(
                f"Not merging '{row.title}': stored row belongs to another business"
            )
            return SKIPPED

        try:
            self.table.put_item(
                Item=merge_items(existing, item),
                ConditionExpression=Attr('business_id').eq(row.business_id)
            )
        except ClientError as e:
            if not is_conditional_failure(e):
                raise
            return SKIPPED
        return UPDATED

    def cleanup(self, retention_days: int, now: Optional[datetime] = None) -> int:
        """
        Delete ingested events that ended before the retention cutoff.

        Rows with no end date are judged by their start date. Rows exactly
        at the cutoff are kept. Errors are logged and treated as zero
        deletions.

        Args:
            retention_days: Days after an event's end to keep it
            now: Reference time (default: current UTC time)

        Returns:
            Count of deleted events
        """
        now = now or datetime.now(timezone.utc)
        cutoff = format_iso_no_ms(now - timedelta(days=retention_days))
        source = Attr('icon').eq(SOURCE_TAG) & Attr('type').eq(EVENT_TYPE)

        try:
            keys = self._scan_keys(source & Attr('end_date').lt(cutoff))
            keys += self._scan_keys(
                source & Attr('end_date').not_exists() & Attr('start_date').lt(cutoff)
            )
            with self.table.batch_writer() as writer:
                for key in keys:
                    writer.delete_item(Key={self.KEY_ATTRIBUTE: key})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Cleanup of expired events failed: {e}")
            return 0

        logger.info(
            f"Cleanup removed {len(keys)} expired events",
            extra={'cutoff': cutoff, 'deleted': len(keys)}
        )
        return len(keys)

    def _scan_keys(self, filter_expression) -> List[str]:
        kwargs = {
            'FilterExpression': filter_expression,
            'ProjectionExpression': self.KEY_ATTRIBUTE
        }
        response = self.table.scan(**kwargs)
        items = response.get('Items', [])

        # Handle pagination
        while 'LastEvaluatedKey' in response:
            response = self.table.scan(
                ExclusiveStartKey=response['LastEvaluatedKey'], **kwargs
            )
            items.extend(response.get('Items', []))

        return [item[self.KEY_ATTRIBUTE] for item in items]


def is_storable(row: EventRow) -> bool:
    return bool(
        row.title and row.title.strip()
        and row.business_id and row.created_by and row.start_date
    )


def is_conditional_failure(error: ClientError) -> bool:
    return error.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException'


def to_batch_failure(batch: int, rows: int, error: Exception) -> BatchFailure:
    """Capture code, message, details and hint from a store error."""
    if isinstance(error, ClientError):
        info = error.response.get('Error', {})
        status = error.response.get('ResponseMetadata', {}).get('HTTPStatusCode')
        details = error.operation_name
        if status:
            details = f"{error.operation_name} returned HTTP {status}"
        reasons = info.get('CancellationReasons')
        return BatchFailure(
            batch=batch,
            rows=rows,
            message=info.get('Message') or str(error),
            code=info.get('Code'),
            details=details,
            hint=str(reasons) if reasons else None
        )
    return BatchFailure(batch=batch, rows=rows, message=str(error))


def row_to_item(row: EventRow) -> Dict[str, Any]:
    """
    Convert an EventRow to a DynamoDB item.

    Args:
        row: EventRow object

    Returns:
        DynamoDB item dictionary
    """
    item = {
        'dedupe_key': dedupe_key_for(row),
        'title': row.title.strip(),
        'type': row.type,
        'business_id': row.business_id,
        'created_by': row.created_by,
        'start_date': format_iso_no_ms(row.start_date),
        'icon': row.icon,
        'rating': row.rating,
        'updated_at': format_iso_no_ms(datetime.now(timezone.utc))
    }

    # Add optional fields if present
    optional = {
        'end_date': format_iso_no_ms(row.end_date) if row.end_date else None,
        'location': row.location,
        'description': row.description,
        'image': row.image,
        'booking_url': row.booking_url,
        'availability_status': row.availability_status
    }
    for name, value in optional.items():
        if value:
            item[name] = value

    return item


def merge_items(existing: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge an incoming item into the stored one.

    Start and end follow the in-run consolidation rules (earliest start,
    latest end). The longer description wins. Image, booking URL and
    availability are refreshed from the incoming item when it has them.
    """
    merged = dict(existing)

    merged['start_date'] = format_iso_no_ms(min(
        parse_iso(existing['start_date']), parse_iso(incoming['start_date'])
    ))

    ends = [parse_iso(v) for v in (existing.get('end_date'), incoming.get('end_date')) if v]
    if ends:
        merged['end_date'] = format_iso_no_ms(max(ends))

    description = existing.get('description')
    if incoming.get('description') and (
        not description or len(incoming['description']) > len(description)
    ):
        merged['description'] = incoming['description']

    for name in ('image', 'booking_url', 'availability_status'):
        if incoming.get(name):
            merged[name] = incoming[name]

    merged['updated_at'] = incoming['updated_at']
    return merged
