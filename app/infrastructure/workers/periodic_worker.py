from __future__ import annotations

import logging
import threading
from typing import Any, Callable


class PeriodicWorker:
    def __init__(self, job: Callable[[], Any], interval_seconds: float, name: str = "periodic-worker") -> None:
        self._job = job
        self._interval = interval_seconds
        self._name = name
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._logger = logging.getLogger(__name__)

    def start(self) -> None:
        if self._interval <= 0 or (self._thread and self._thread.is_alive()):
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self._name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        t = self._thread
        if t and t.is_alive():
            t.join(timeout=timeout)
        self._thread = None

    def _loop(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self._job()
            except Exception as e:
                # keep running; the next tick may succeed
                self._logger.exception("Periodic job failed", extra={"error": str(e), "worker": self._name})
