from __future__ import annotations

import logging
import threading
import time

from docbot.core import metrics
from docbot.services.sync_orchestrator import SyncOrchestrator

LOGGER = logging.getLogger(__name__)


class SyncScheduler:
    """Runs sync passes on a background thread.

    Ticks and manual requests share one pending slot: a request that arrives
    while a pass is running is dropped, and requests never queue up.
    """

    def __init__(self, orchestrator: SyncOrchestrator, interval_seconds: float | None = None, enabled: bool | None = None):
        if interval_seconds is None or enabled is None:
            from docbot.core.config import settings

            interval_seconds = interval_seconds or settings.SYNC_INTERVAL_MINUTES * 60
            enabled = settings.SYNC_ENABLED if enabled is None else enabled
        self.orchestrator = orchestrator
        self.interval_seconds = float(interval_seconds)
        self.enabled = bool(enabled)
        self._pending = threading.Event()
        self._stopping = threading.Event()
        self._threads: list[threading.Thread] = []

    def request_sync(self) -> bool:
        if self.orchestrator.state.sync_in_progress.get():
            LOGGER.info("sync_tick_dropped", extra={"event": "sync_tick_dropped"})
            metrics.sync_runs_total.labels(result="skipped").inc()
            return False
        self._pending.set()
        return True

    def run_once(self) -> None:
        try:
            self.orchestrator.trigger_sync()
        except Exception:  # noqa: BLE001
            LOGGER.exception("sync_scheduler_pass_failed", extra={"event": "sync_scheduler_pass_failed"})

    def _work_loop(self) -> None:
        while not self._stopping.is_set():
            if not self._pending.wait(timeout=0.5):
                continue
            self._pending.clear()
            if self._stopping.is_set():
                break
            self.run_once()

    def _tick_loop(self) -> None:
        while not self._stopping.wait(self.interval_seconds):
            self.request_sync()

    def start(self) -> bool:
        if not self.enabled:
            LOGGER.info("sync_disabled", extra={"event": "sync_disabled"})
            return False
        self.orchestrator.hydrate()
        self._stopping.clear()
        self._threads = [
            threading.Thread(target=self._work_loop, name="docbot-sync-worker", daemon=True),
            threading.Thread(target=self._tick_loop, name="docbot-sync-ticker", daemon=True),
        ]
        for thread in self._threads:
            thread.start()
        LOGGER.info("sync_scheduler_started", extra={"event": "sync_scheduler_started", "interval_seconds": self.interval_seconds})
        self.request_sync()
        return True

    def stop(self, timeout: float | None = None) -> None:
        self._stopping.set()
        self._pending.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []

    def run_forever(self) -> None:
        if not self.start():
            return
        try:
            while True:
                time.sleep(1.0)
        except KeyboardInterrupt:
            LOGGER.info("sync_scheduler_interrupted", extra={"event": "sync_scheduler_interrupted"})
        finally:
            self.stop()
