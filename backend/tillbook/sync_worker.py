# Overview: Background thread that flushes the sync queue on a fixed interval.

from __future__ import annotations

import logging
import threading

from .extensions import db
from .services.sync_service import flush_queue

logger = logging.getLogger(__name__)


class SyncWorker(threading.Thread):
    """
    Periodic flusher.

    Each tick runs inside an app context and swallows nothing silently:
    unexpected errors are logged and the loop keeps going.
    """

    def __init__(self, app, interval: float | None = None):
        super().__init__(name="tillbook-sync", daemon=True)
        self.app = app
        self.interval = interval if interval is not None else app.config["SYNC_INTERVAL_SECONDS"]
        self._stop_event = threading.Event()

    def run(self) -> None:
        logger.info("Sync worker started (every %ss)", self.interval)
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(self.interval)
        logger.info("Sync worker stopped")

    def tick(self) -> dict | None:
        with self.app.app_context():
            try:
                return flush_queue()
            except Exception:
                logger.exception("Sync flush failed")
                return None
            finally:
                db.session.remove()

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout)
