from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable

from app.application.ports.dispatch_scheduler import DispatchSchedulerPort
from app.domain.entities.notification import DispatchRequest


class DispatchWorker(DispatchSchedulerPort):
    """
    Background delivery over a bounded queue.

    submit() never blocks: when the queue is full the request is dropped and
    False is returned. Retries with backoff happen inside the handler, on this
    worker's thread.
    """

    def __init__(self, handler: Callable[[DispatchRequest], Any], maxsize: int = 1000, poll_interval: float = 0.5) -> None:
        self._handler = handler
        self._queue: queue.Queue[DispatchRequest] = queue.Queue(maxsize=maxsize)
        self._poll_interval = poll_interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._logger = logging.getLogger(__name__)

    def submit(self, request: DispatchRequest) -> bool:
        try:
            self._queue.put_nowait(request)
            return True
        except queue.Full:
            self._logger.warning(
                "Dispatch queue full, request dropped",
                extra={"entry_id": request.entry_id, "reason": request.event.value},
            )
            return False

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="dispatch-worker", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        t = self._thread
        if t and t.is_alive():
            t.join(timeout=timeout)
        self._thread = None

    def wait_idle(self) -> None:
        """Block until every submitted request has been handled."""
        self._queue.join()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                request = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
            try:
                self._handler(request)
            except Exception as e:
                self._logger.exception("Dispatch handler failed", extra={"entry_id": request.entry_id, "error": str(e)})
            finally:
                self._queue.task_done()
