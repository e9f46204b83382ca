from __future__ import annotations

import threading

from app.domain.entities.notification import DispatchRequest, NotificationEvent
from app.infrastructure.workers.dispatch_worker import DispatchWorker
from app.infrastructure.workers.periodic_worker import PeriodicWorker


def _request(entry_id: str) -> DispatchRequest:
    return DispatchRequest(entry_id=entry_id, event=NotificationEvent.NOTIFY)


def test_dispatch_worker_handles_requests_in_order():
    handled: list[str] = []
    worker = DispatchWorker(handler=lambda r: handled.append(r.entry_id), maxsize=10, poll_interval=0.05)
    worker.start()
    try:
        for n in range(5):
            assert worker.submit(_request(f"e{n}")) is True
        worker.wait_idle()
    finally:
        worker.stop()

    assert handled == ["e0", "e1", "e2", "e3", "e4"]


def test_dispatch_worker_survives_handler_errors():
    handled: list[str] = []

    def handler(request: DispatchRequest) -> None:
        if request.entry_id == "bad":
            raise RuntimeError("boom")
        handled.append(request.entry_id)

    worker = DispatchWorker(handler=handler, maxsize=10, poll_interval=0.05)
    worker.start()
    try:
        worker.submit(_request("bad"))
        worker.submit(_request("good"))
        worker.wait_idle()
    finally:
        worker.stop()

    assert handled == ["good"]


def test_full_dispatch_queue_drops_requests():
    worker = DispatchWorker(handler=lambda r: None, maxsize=1)

    assert worker.submit(_request("e1")) is True
    assert worker.submit(_request("e2")) is False


def test_periodic_worker_runs_job_until_stopped():
    ran = threading.Event()
    calls: list[int] = []

    def job() -> None:
        calls.append(1)
        if len(calls) >= 2:
            ran.set()

    worker = PeriodicWorker(job=job, interval_seconds=0.01)
    worker.start()
    try:
        assert ran.wait(timeout=2.0)
    finally:
        worker.stop()

    count = len(calls)
    assert count >= 2
    ran.wait(timeout=0.05)
    assert len(calls) == count


def test_periodic_worker_with_zero_interval_does_not_start():
    calls: list[int] = []
    worker = PeriodicWorker(job=lambda: calls.append(1), interval_seconds=0)
    worker.start()
    worker.stop()

    assert calls == []
