from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable

from app.application.ports.audit_log import AuditLogPort
from app.application.ports.loyalty_store import LoyaltyStorePort
from app.application.ports.notification_log import NotificationLogPort
from app.application.ports.otp_store import OTPStorePort
from app.application.ports.push_registry import PushRegistryPort
from app.application.ports.queue_store import QueueStorePort
from app.application.ports.reputation_store import ReputationStorePort
from app.domain.entities.audit import StatusTransitionRecord
from app.domain.entities.notification import (
    DeliveryOutcome,
    NotificationChannel,
    NotificationEvent,
    NotificationRecord,
)
from app.domain.entities.otp_challenge import OTPChallenge, OTPChannel
from app.domain.entities.push_subscription import PushSubscription
from app.domain.entities.queue_entry import QueueEntry
from app.domain.entities.queue_status import QueueStatus
from app.domain.entities.reputation import Reputation


class MemoryQueueStore(QueueStorePort):
    def __init__(self) -> None:
        self._entries: dict[str, QueueEntry] = {}
        self._lock = threading.Lock()

    def get(self, entry_id: str) -> QueueEntry | None:
        with self._lock:
            return self._entries.get(entry_id)

    def save(self, entry: QueueEntry) -> None:
        with self._lock:
            self._entries[entry.id] = entry

    def save_many(self, entries: list[QueueEntry]) -> None:
        with self._lock:
            for entry in entries:
                self._entries[entry.id] = entry

    def list_active(self, salon_id: str) -> list[QueueEntry]:
        with self._lock:
            return [e for e in self._entries.values() if e.salon_id == salon_id and e.is_active]

    def find_active_for_user(self, salon_id: str, user_id: str) -> QueueEntry | None:
        with self._lock:
            for entry in self._entries.values():
                if entry.salon_id == salon_id and entry.user_id == user_id and entry.is_active:
                    return entry
        return None

    def list_for_user(self, user_id: str) -> list[QueueEntry]:
        with self._lock:
            return [e for e in self._entries.values() if e.user_id == user_id]

    def list_by_status(self, status: QueueStatus) -> list[QueueEntry]:
        with self._lock:
            return [e for e in self._entries.values() if e.status == status]


class MemoryLoyaltyStore(LoyaltyStorePort):
    def __init__(self) -> None:
        self._points: dict[tuple[str, str], int] = {}
        self._awarded: set[str] = set()
        self._lock = threading.Lock()

    def get_points(self, user_id: str, salon_id: str) -> int:
        with self._lock:
            return self._points.get((user_id, salon_id), 0)

    def add_points(self, user_id: str, salon_id: str, points: int, award_key: str) -> tuple[int, bool]:
        key = (user_id, salon_id)
        with self._lock:
            if award_key in self._awarded:
                return self._points.get(key, 0), False
            self._awarded.add(award_key)
            self._points[key] = self._points.get(key, 0) + points
            return self._points[key], True


class MemoryOTPStore(OTPStorePort):
    def __init__(self) -> None:
        self._challenges: dict[tuple[str, OTPChannel], OTPChallenge] = {}
        self._last_issued: dict[tuple[str, OTPChannel], datetime] = {}
        self._verified: dict[str, set[OTPChannel]] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str, channel: OTPChannel) -> OTPChallenge | None:
        with self._lock:
            return self._challenges.get((user_id, channel))

    def put(self, challenge: OTPChallenge) -> None:
        key = (challenge.user_id, challenge.channel)
        with self._lock:
            self._challenges[key] = challenge
            self._last_issued[key] = challenge.issued_at

    def delete(self, user_id: str, channel: OTPChannel) -> None:
        with self._lock:
            self._challenges.pop((user_id, channel), None)

    def last_issued_at(self, user_id: str, channel: OTPChannel) -> datetime | None:
        with self._lock:
            return self._last_issued.get((user_id, channel))

    def mark_verified(self, user_id: str, channel: OTPChannel) -> None:
        with self._lock:
            self._verified.setdefault(user_id, set()).add(channel)

    def verified_channels(self, user_id: str) -> set[OTPChannel]:
        with self._lock:
            return set(self._verified.get(user_id, set()))

    def purge_expired(self, now: datetime, issued_before: datetime | None = None) -> int:
        with self._lock:
            dead = [key for key, c in self._challenges.items() if c.is_expired(now)]
            for key in dead:
                del self._challenges[key]
            if issued_before is not None:
                for key in [k for k, at in self._last_issued.items() if at < issued_before]:
                    del self._last_issued[key]
            return len(dead)


class MemoryNotificationLog(NotificationLogPort):
    def __init__(self) -> None:
        self._records: dict[tuple[str, NotificationChannel], NotificationRecord] = {}
        self._lock = threading.Lock()

    def claim(
        self,
        entry_id: str,
        channel: NotificationChannel,
        event: NotificationEvent,
        now: datetime,
        dedupe_seconds: float,
    ) -> NotificationRecord | None:
        key = (entry_id, channel)
        with self._lock:
            existing = self._records.get(key)
            if (
                existing is not None
                and existing.outcome != DeliveryOutcome.FAILED
                and now - existing.last_attempt_at < timedelta(seconds=dedupe_seconds)
            ):
                return None

            claimed = NotificationRecord(
                queue_entry_id=entry_id,
                channel=channel,
                attempt_count=existing.attempt_count if existing else 0,
                last_attempt_at=now,
                outcome=DeliveryOutcome.PENDING,
                event=event,
                last_error=None,
            )
            self._records[key] = claimed
            return claimed

    def record(
        self,
        entry_id: str,
        channel: NotificationChannel,
        outcome: DeliveryOutcome,
        now: datetime,
        event: NotificationEvent | None = None,
        attempts: int = 0,
        error: str | None = None,
    ) -> NotificationRecord:
        key = (entry_id, channel)
        with self._lock:
            existing = self._records.get(key)
            if existing is None:
                updated = NotificationRecord(
                    queue_entry_id=entry_id,
                    channel=channel,
                    attempt_count=attempts,
                    last_attempt_at=now,
                    outcome=outcome,
                    event=event,
                    last_error=error,
                )
            else:
                updated = replace(
                    existing,
                    attempt_count=existing.attempt_count + attempts,
                    last_attempt_at=now,
                    outcome=outcome,
                    event=event or existing.event,
                    last_error=error,
                )
            self._records[key] = updated
            return updated

    def get(self, entry_id: str, channel: NotificationChannel) -> NotificationRecord | None:
        with self._lock:
            return self._records.get((entry_id, channel))

    def list_for_entry(self, entry_id: str) -> list[NotificationRecord]:
        with self._lock:
            records = [r for (eid, _), r in self._records.items() if eid == entry_id]
        return sorted(records, key=lambda r: r.last_attempt_at)


class MemoryPushRegistry(PushRegistryPort):
    def __init__(self) -> None:
        self._subscriptions: dict[str, dict[str, PushSubscription]] = {}
        self._lock = threading.Lock()

    def save(self, subscription: PushSubscription) -> None:
        with self._lock:
            self._subscriptions.setdefault(subscription.user_id, {})[subscription.endpoint] = subscription

    def remove(self, user_id: str, endpoint: str) -> bool:
        with self._lock:
            return self._subscriptions.get(user_id, {}).pop(endpoint, None) is not None

    def live_for(self, user_id: str, now: datetime) -> list[PushSubscription]:
        with self._lock:
            subs = self._subscriptions.get(user_id, {})
            for endpoint in [e for e, s in subs.items() if s.is_expired(now)]:
                del subs[endpoint]
            return list(subs.values())

    def touch(self, user_id: str, endpoint: str, now: datetime) -> None:
        with self._lock:
            subs = self._subscriptions.get(user_id, {})
            if endpoint in subs:
                subs[endpoint] = replace(subs[endpoint], last_used_at=now)

    def prune_expired(self, now: datetime) -> int:
        removed = 0
        with self._lock:
            for subs in self._subscriptions.values():
                for endpoint in [e for e, s in subs.items() if s.is_expired(now)]:
                    del subs[endpoint]
                    removed += 1
        return removed


class MemoryReputationStore(ReputationStorePort):
    def __init__(self) -> None:
        self._reputations: dict[str, Reputation] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Reputation | None:
        with self._lock:
            return self._reputations.get(user_id)

    def update(self, user_id: str, fn: Callable[[Reputation], Reputation]) -> Reputation:
        with self._lock:
            updated = fn(self._reputations.get(user_id) or Reputation(user_id=user_id))
            self._reputations[user_id] = updated
            return updated


class MemoryAuditLog(AuditLogPort):
    def __init__(self) -> None:
        self._records: list[StatusTransitionRecord] = []
        self._lock = threading.Lock()

    def append(self, record: StatusTransitionRecord) -> None:
        with self._lock:
            self._records.append(record)

    def list_for_entry(self, entry_id: str) -> list[StatusTransitionRecord]:
        with self._lock:
            return [r for r in self._records if r.entry_id == entry_id]
