"""Long-running scheduler firing the ingest on a fixed interval.

Usage::

    events-ingestor            # reads configuration from the environment

Each tick starts the run on a worker thread. A tick landing while the
previous run is still going is skipped by the orchestrator's run guard, so
at most one run is ever active.
"""
import logging
import platform
import signal
import threading
from typing import List

from config import IngestConfig
from ingestor import IngestOrchestrator
from log_config import setup_logging

logger = logging.getLogger(__name__)


class IngestScheduler:
    """Fires ``IngestOrchestrator.trigger`` every ``interval_hours``."""

    def __init__(
        self,
        orchestrator: IngestOrchestrator,
        interval_hours: float = 6,
        run_on_start: bool = False
    ):
        if interval_hours <= 0:
            raise ValueError(f"interval_hours must be greater than zero, got {interval_hours}")
        self.orchestrator = orchestrator
        self.interval_seconds = interval_hours * 3600
        self.run_on_start = run_on_start
        self._stop = threading.Event()
        self._workers: List[threading.Thread] = []

    def tick(self) -> threading.Thread:
        """Start one guarded run on a worker thread."""
        worker = threading.Thread(
            target=self.orchestrator.trigger,
            name='ticketmaster-ingest',
            daemon=True
        )
        worker.start()
        self._workers = [w for w in self._workers if w.is_alive()] + [worker]
        return worker

    def start(self, install_signal_handlers: bool = True) -> None:
        """Run the schedule loop. Blocks until ``stop`` or SIGINT/SIGTERM."""
        if install_signal_handlers:
            def _shutdown(signum, frame):
                logger.info(f"Signal {signum} received; stopping scheduler.")
                self.stop()

            signal.signal(signal.SIGINT, _shutdown)
            if platform.system() != 'Windows':
                signal.signal(signal.SIGTERM, _shutdown)

        logger.info(
            f"Scheduler started. Interval: {self.interval_seconds / 3600:g}h, "
            f"run on start: {self.run_on_start}"
        )

        if self.run_on_start:
            logger.info("RUN_ON_START=true, running immediate ingest...")
            self.tick()
        else:
            logger.info("Waiting for next scheduled run.")

        while not self._stop.wait(self.interval_seconds):
            self.tick()

        for worker in self._workers:
            worker.join()
        logger.info("Scheduler stopped.")

    def stop(self) -> None:
        self._stop.set()


def main() -> int:
    """Console entry point for the long-running ingestor."""
    config = IngestConfig.from_env()
    setup_logging(config.log_level)

    if not config.enabled:
        logger.warning("Ticketmaster ingest disabled via ENABLE_TICKETMASTER_INGEST.")
        return 0

    logger.info(
        "Ticketmaster ingestor started",
        extra={
            'cities': config.cities,
            'fetch_window_days': config.fetch_window_days,
            'page_size': config.page_size,
            'interval_hours': config.schedule_interval_hours
        }
    )

    scheduler = IngestScheduler(
        IngestOrchestrator.from_config(config),
        interval_hours=config.schedule_interval_hours,
        run_on_start=config.run_on_start
    )
    scheduler.start()
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
