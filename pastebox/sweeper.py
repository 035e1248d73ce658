"""
Background expiry sweep.
Runs on its own thread, independent of request handling.
"""
import logging
import threading
from typing import Optional

from pastebox.service import PasteService

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Periodically deletes every paste whose sunset has passed."""

    def __init__(self, service: PasteService, interval_seconds: float):
        self.service = service
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> int:
        try:
            return self.service.sweep()
        except Exception as e:
            logger.error(f"Error in expiry sweep: {e}")
            return 0

    def _loop(self):
        while not self._stop.wait(self.interval_seconds):
            self.run_once()

    def start(self):
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="expiry-sweeper", daemon=True)
        self._thread.start()
        logger.info(f"Expiry sweeper started (every {self.interval_seconds}s)")

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
