# =======================================================================================
# roomtrack/workers/expiry_worker.py - Background Combined Group Expiry
# =======================================================================================
import logging
import threading
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from ..database import DatabaseManager
from ..services.combined_groups import GroupMergeCoordinator

logger = logging.getLogger(__name__)


class ExpiryWorker:
    """Periodically deactivates combined groups whose valid_until has passed."""

    def __init__(self, db: DatabaseManager, coordinator: GroupMergeCoordinator, interval: float):
        self.db = db
        self.coordinator = coordinator
        self.interval = interval
        self.running = False
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Start / Stop
    # ------------------------------------------------------------------
    def start(self):
        """Start the worker in a background thread."""
        if not self._should_start():
            return

        self.running = True
        self._stop.clear()
        self._thread = threading.Thread(target=self._run_loop, name="expiry-worker", daemon=True)
        self._thread.start()
        logger.info("Expiry worker started (interval=%ss)", self.interval)

    def stop(self):
        """Stop the worker and wait for the current sweep to finish."""
        self.running = False
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def _should_start(self) -> bool:
        if self.running:
            return False
        if self.interval <= 0:
            logger.info("EXPIRY_SWEEP_INTERVAL is 0; skipping expiry worker.")
            return False
        return True

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------
    def sweep(self) -> int:
        """Run one expiry pass in its own transaction."""
        with self.db.get_connection() as conn:
            return self.coordinator.reap_expired(conn)

    def _run_loop(self):
        while self.running:
            try:
                self.sweep()
            except SQLAlchemyError:
                logger.exception("Expiry sweep failed; retrying in %ss", self.interval)
            self._stop.wait(self.interval)
