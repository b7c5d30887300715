from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, TypeVar

from catalog.constants import SETTINGS_SHEETS_AUTO_SYNC, SETTINGS_SHEETS_URL
from catalog.db.sqlite import SettingsStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SheetAutoSync:
    """
    Periodic Google Sheets sync with a single in-flight run.

    A tick that arrives while a sync is running is dropped, not queued.
    Manual syncs go through ``run_exclusive`` and share the same flag.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        runner: Callable[[str], object],
        interval: float,
    ):
        self.settings_store = settings_store
        self.runner = runner
        self.interval = interval
        self._in_flight = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def busy(self) -> bool:
        return self._in_flight.locked()

    def run_exclusive(self, fn: Callable[[], T]) -> Optional[T]:
        """Run ``fn`` unless a sync is already in flight; ``None`` when busy."""
        if not self._in_flight.acquire(blocking=False):
            return None
        try:
            return fn()
        finally:
            self._in_flight.release()

    def tick(self) -> bool:
        """True when a sync actually ran on this tick."""
        if self.settings_store.get(SETTINGS_SHEETS_AUTO_SYNC) != "true":
            return False
        url = (self.settings_store.get(SETTINGS_SHEETS_URL) or "").strip()
        if not url:
            return False

        if not self._in_flight.acquire(blocking=False):
            logger.info("Auto-sync tick dropped: previous sync still running")
            return False
        try:
            self.runner(url)
        finally:
            self._in_flight.release()
        return True

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception:
                # поток работает до stop()
                logger.exception("Auto-sync from Google Sheets failed")
            if self._stop.wait(self.interval):
                break

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="sheets-auto-sync", daemon=True)
        self._thread.start()
        logger.info("Sheets auto-sync loop started, interval=%ss", self.interval)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None
