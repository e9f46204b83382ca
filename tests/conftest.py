from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from app.application.ports.dispatch_scheduler import DispatchSchedulerPort
from app.application.use_cases.loyalty import LoyaltyUseCase
from app.application.use_cases.queue_ledger import QueueLedgerUseCase
from app.application.use_cases.reputation import ReputationUseCase
from app.application.use_cases.status_transition import StatusTransitionUseCase
from app.domain.entities.notification import DispatchRequest
from app.infrastructure.directory.memory_directory import MemoryDirectory
from app.infrastructure.store.memory_store import (
    MemoryAuditLog,
    MemoryLoyaltyStore,
    MemoryQueueStore,
    MemoryReputationStore,
)


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingScheduler(DispatchSchedulerPort):
    def __init__(self) -> None:
        self.requests: list[DispatchRequest] = []

    def submit(self, request: DispatchRequest) -> bool:
        self.requests.append(request)
        return True


@dataclass
class Engine:
    clock: FakeClock
    directory: MemoryDirectory
    store: MemoryQueueStore
    loyalty_store: MemoryLoyaltyStore
    ledger: QueueLedgerUseCase
    loyalty: LoyaltyUseCase
    reputation_store: MemoryReputationStore
    reputation: ReputationUseCase
    audit: MemoryAuditLog
    scheduler: RecordingScheduler
    transitions: StatusTransitionUseCase


def build_engine(clock: FakeClock) -> Engine:
    directory = MemoryDirectory.seeded()
    store = MemoryQueueStore()
    loyalty_store = MemoryLoyaltyStore()
    audit = MemoryAuditLog()
    ledger = QueueLedgerUseCase(store=store, directory=directory, default_service_minutes=30, clock=clock, audit=audit)
    loyalty = LoyaltyUseCase(store=loyalty_store)
    reputation_store = MemoryReputationStore()
    reputation = ReputationUseCase(store=reputation_store, clock=clock)
    scheduler = RecordingScheduler()
    transitions = StatusTransitionUseCase(
        ledger=ledger,
        directory=directory,
        scheduler=scheduler,
        loyalty=loyalty,
        reputation=reputation,
        clock=clock,
    )
    return Engine(
        clock=clock,
        directory=directory,
        store=store,
        loyalty_store=loyalty_store,
        ledger=ledger,
        loyalty=loyalty,
        reputation_store=reputation_store,
        reputation=reputation,
        audit=audit,
        scheduler=scheduler,
        transitions=transitions,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(clock: FakeClock) -> Engine:
    return build_engine(clock)
