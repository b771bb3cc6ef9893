"""Background refresh jobs: periodic store snapshots and population discovery.

Both jobs only read the store. A failed run is logged and the job keeps its
schedule; stopping a job interrupts the wait between runs immediately.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from src.settings import Settings
from src.utils.logging_config import log_context, log_performance
from src.utils.validation import validate_in_range, validate_not_none

if TYPE_CHECKING:
    from src.memory.character_store import CharacterStore
    from src.services.discovery_service import RelationshipDiscoveryService

logger = logging.getLogger(__name__)

# Seconds to wait for a job thread to finish after stop()
STOP_JOIN_TIMEOUT = 5.0


class PeriodicJob:
    """Run an action every ``interval_seconds`` on a daemon thread.

    The first run happens one interval after start(). Each run gets its own
    correlation id of the form ``<name>-<n>``.
    """

    def __init__(self, name: str, interval_seconds: float, action: Callable[[], Any]):
        validate_not_none(action, "action")
        validate_in_range(interval_seconds, "interval_seconds", min_val=0.001)
        self.name = name
        self.interval_seconds = interval_seconds
        self.action = action
        self.run_count = 0
        self.failure_count = 0
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the job thread. Calling start on a running job does nothing."""
        if self.is_running:
            logger.debug("Job %s already running", self.name)
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name=f"npc-{self.name}")
        self._thread.start()
        logger.info("Started job %s (every %.0fs)", self.name, self.interval_seconds)

    def stop(self, timeout: float = STOP_JOIN_TIMEOUT) -> None:
        """Signal the job to stop and wait for its thread."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Job %s did not stop within %.1fs", self.name, timeout)
        self._thread = None
        logger.info("Stopped job %s after %d run(s)", self.name, self.run_count)

    def run_once(self) -> bool:
        """Run the action once under a fresh correlation id.

        Returns:
            True if the action completed, False if it raised.
        """
        self.run_count += 1
        with log_context(f"{self.name}-{self.run_count}"):
            try:
                self.action()
            except Exception:
                self.failure_count += 1
                logger.exception("Job %s run %d failed", self.name, self.run_count)
                return False
        return True

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            self.run_once()


class RefreshScheduler:
    """Owns the snapshot-logging and discovery jobs for one store."""

    def __init__(
        self,
        settings: Settings,
        store: CharacterStore,
        discovery: RelationshipDiscoveryService,
    ):
        """Initialize the scheduler.

        Args:
            settings: Application settings (intervals and enable flags).
            store: Store whose snapshot is logged.
            discovery: Discovery service run over the whole population.
        """
        logger.debug("Initializing RefreshScheduler")
        validate_not_none(store, "store")
        validate_not_none(discovery, "discovery")
        self.settings = settings
        self.store = store
        self.discovery = discovery
        self.jobs: list[PeriodicJob] = []

    def _build_jobs(self) -> list[PeriodicJob]:
        jobs = []
        if self.settings.periodic_logging_enabled:
            jobs.append(
                PeriodicJob(
                    "snapshot",
                    self.settings.snapshot_log_interval_seconds,
                    self.store.log_snapshot,
                )
            )
        if self.settings.auto_discovery_enabled:
            jobs.append(
                PeriodicJob(
                    "discovery",
                    self.settings.discovery_interval_seconds,
                    self.discovery.discover_all,
                )
            )
        return jobs

    @property
    def is_running(self) -> bool:
        return any(job.is_running for job in self.jobs)

    def start(self) -> None:
        """Start the enabled jobs, running an initial discovery first if configured."""
        if self.is_running:
            logger.debug("RefreshScheduler already running")
            return

        if self.settings.auto_discovery_enabled and self.settings.initial_discovery_on_start:
            with log_context("discovery-initial"):
                try:
                    with log_performance(logger, "Initial relationship discovery"):
                        self.discovery.discover_all()
                except Exception:
                    logger.exception("Initial relationship discovery failed")

        self.jobs = self._build_jobs()
        for job in self.jobs:
            job.start()
        logger.info("RefreshScheduler started with %d job(s)", len(self.jobs))

    def stop(self) -> None:
        """Stop every job. Safe to call more than once."""
        for job in self.jobs:
            job.stop()
        if self.jobs:
            logger.info("RefreshScheduler stopped")
        self.jobs = []

    def __enter__(self) -> RefreshScheduler:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
