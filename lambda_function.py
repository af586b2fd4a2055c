"""AWS Lambda handler for the scheduled Ticketmaster events ingest."""
import json
import logging
import time
from typing import Any, Dict

from config import IngestConfig
from ingestor import IngestOrchestrator, RunState
from log_config import setup_logging
from processor.errors import IngestRunError

# Kept across warm invocations so overlapping triggers share one run guard.
_orchestrator = None


def _get_orchestrator(config: IngestConfig) -> IngestOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = IngestOrchestrator.from_config(config)
    return _orchestrator


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body, default=str)}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the Ticketmaster ingest.

    Args:
        event: EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and the run's metrics
    """
    start_time = time.time()

    try:
        config = IngestConfig.from_env()
    except Exception as e:
        setup_logging('INFO')
        logging.getLogger(__name__).error(f"Invalid configuration: {e}")
        return _response(500, {
            'message': 'Invalid configuration',
            'error': str(e),
            'error_type': type(e).__name__
        })

    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    if not config.enabled:
        logger.warning("Ticketmaster ingest skipped: ENABLE_TICKETMASTER_INGEST is not enabled.")
        return _response(200, {
            'source': 'ticketmaster',
            'disabled': True,
            'message': 'Ticketmaster ingest disabled via ENABLE_TICKETMASTER_INGEST',
            'fetched': 0,
            'mapped': 0,
            'consolidated': 0,
            'inserted': 0,
            'updated': 0,
            'failed': 0
        })

    logger.info(
        "Lambda execution started",
        extra={'cities': config.cities, 'table_name': config.events_table_name}
    )

    try:
        orchestrator = _get_orchestrator(config)
        if orchestrator.state is RunState.RUNNING:
            return _response(409, {'message': 'Previous ingest still running'})

        metrics = orchestrator.trigger(raise_errors=True)
        if metrics is None:
            return _response(409, {'message': 'Previous ingest still running'})

    except IngestRunError as e:
        return _response(500, {
            'message': 'Ticketmaster upsert failed',
            'error': str(e),
            'batch_failures': [vars(f) for f in e.batch_failures],
            'duration_seconds': round(time.time() - start_time, 2)
        })

    except Exception as e:
        return _response(500, {
            'message': 'Ingest failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(time.time() - start_time, 2)
        })

    body = metrics.as_dict()
    body['duration_seconds'] = round(time.time() - start_time, 2)
    return _response(200, body)
