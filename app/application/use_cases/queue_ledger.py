from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Callable, Iterable

from app.application.exceptions import AlreadyQueued, InvalidRequest, InvalidTransition, NotFound
from app.application.ports.audit_log import AuditLogPort
from app.application.ports.directory import DirectoryPort
from app.application.ports.queue_store import QueueStorePort
from app.application.utils.clock import Clock, utc_now
from app.application.utils.keyed_lock import KeyedLock
from app.application.utils.wait_time import rank_entries
from app.domain.entities.audit import Actor, StatusTransitionRecord
from app.domain.entities.queue_entry import QueueEntry
from app.domain.entities.queue_status import QueueStatus, can_transition


class QueueLedgerUseCase:
    """
    Owns the ordered active list of every salon.

    All mutations for one salon run inside that salon's lock, so positions
    stay contiguous (1..N, joined_at order) whenever a reader looks.
    Salons never share a lock.
    """

    def __init__(
        self,
        store: QueueStorePort,
        directory: DirectoryPort,
        default_service_minutes: int = 30,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] | None = None,
        audit: AuditLogPort | None = None,
    ) -> None:
        self._store = store
        self._directory = directory
        self._default_service_minutes = default_service_minutes
        self._clock = clock
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._audit = audit
        self._locks = KeyedLock()
        self._logger = logging.getLogger(__name__)

    # -------------------- reads --------------------

    def get(self, entry_id: str) -> QueueEntry:
        entry = self._store.get(entry_id)
        if entry is None:
            raise NotFound(f"Queue entry {entry_id} not found")
        return entry

    def active_queue(self, salon_id: str) -> list[QueueEntry]:
        return sorted(self._store.list_active(salon_id), key=lambda e: e.position)

    def entries_for_user(self, user_id: str) -> list[QueueEntry]:
        return sorted(self._store.list_for_user(user_id), key=lambda e: e.joined_at, reverse=True)

    def history(self, entry_id: str) -> list[StatusTransitionRecord]:
        """Committed status changes of one entry, oldest first."""
        self.get(entry_id)
        return self._audit.list_for_entry(entry_id) if self._audit else []

    # -------------------- mutations --------------------

    def enqueue(self, salon_id: str, user_id: str, service_ids: Iterable[str]) -> QueueEntry:
        ordered_ids = tuple(s.strip() for s in service_ids if s and s.strip())
        if not ordered_ids:
            raise InvalidRequest("At least one service is required")
        if len(set(ordered_ids)) != len(ordered_ids):
            raise InvalidRequest("Service ids must not repeat")
        if not user_id:
            raise InvalidRequest("user_id is required")
        if self._directory.get_salon(salon_id) is None:
            raise InvalidRequest(f"Unknown salon {salon_id}")

        known = self._directory.get_services(salon_id, ordered_ids)
        unknown = [s for s in ordered_ids if s not in known]
        if unknown:
            raise InvalidRequest(f"Unknown services for salon {salon_id}: {', '.join(unknown)}")

        with self._locks.hold(salon_id):
            if self._store.find_active_for_user(salon_id, user_id) is not None:
                raise AlreadyQueued(f"User {user_id} is already in the queue at salon {salon_id}")

            active = self._store.list_active(salon_id)
            joined_at = self._clock()
            latest = max((e.joined_at for e in active), default=None)
            if latest is not None and latest > joined_at:
                # clock skew must not let a newcomer overtake
                joined_at = latest

            entry = QueueEntry(
                id=self._id_factory(),
                salon_id=salon_id,
                user_id=user_id,
                service_ids=ordered_ids,
                joined_at=joined_at,
                status=QueueStatus.WAITING,
                position=len(active) + 1,
            )
            ranked = self._rank_and_save(salon_id, active, extra=[entry])
            created = next(e for e in ranked if e.id == entry.id)

        self._logger.info(
            "Queue joined",
            extra={
                "entry_id": created.id,
                "salon_id": salon_id,
                "user_id": user_id,
                "position": created.position,
                "wait_minutes": created.estimated_wait_minutes,
            },
        )
        return created

    def mutate(
        self,
        entry_id: str,
        fn: Callable[[QueueEntry], QueueEntry],
        actor: Actor = Actor.SYSTEM,
        reason: str | None = None,
    ) -> QueueEntry:
        """
        Apply fn to the freshest copy of the entry under its salon lock and persist the result.
        If fn raises, nothing is written. Terminal results drop out of the active list and the
        rest of the salon is re-ranked in the same write. A status change is written to
        the audit log once stored.
        """
        salon_id = self.get(entry_id).salon_id
        with self._locks.hold(salon_id):
            current = self.get(entry_id)
            updated = fn(current)
            if updated == current:
                return current

            others = [e for e in self._store.list_active(salon_id) if e.id != entry_id]
            if updated.is_active:
                ranked = self._rank_and_save(salon_id, others, extra=[updated])
                stored = next(e for e in ranked if e.id == entry_id)
            else:
                self._rank_and_save(salon_id, others, extra=[], always_save=[updated])
                stored = updated

            if stored.status != current.status:
                self._audit_transition(current, stored, actor, reason)
        return stored

    def remove(
        self,
        entry_id: str,
        terminal_status: QueueStatus,
        reason: str | None = None,
        allowed_from: Iterable[QueueStatus] | None = None,
        actor: Actor = Actor.SYSTEM,
    ) -> QueueEntry:
        """Move an entry to a terminal status and close the gap it leaves."""
        if not terminal_status.is_terminal:
            raise InvalidRequest(f"{terminal_status.value} is not a terminal status")
        allowed = frozenset(allowed_from) if allowed_from is not None else None

        def _terminate(entry: QueueEntry) -> QueueEntry:
            if not can_transition(entry.status, terminal_status) or (
                allowed is not None and entry.status not in allowed
            ):
                raise InvalidTransition(
                    f"Cannot move entry {entry.id} from {entry.status.value} to {terminal_status.value}"
                )
            now = self._clock()
            return replace(
                entry,
                status=terminal_status,
                ended_at=now,
                completed_at=now if terminal_status == QueueStatus.COMPLETED else entry.completed_at,
                terminated_reason=reason if terminal_status != QueueStatus.COMPLETED else entry.terminated_reason,
            )

        removed = self.mutate(entry_id, _terminate, actor=actor, reason=reason)
        self._logger.info(
            "Queue entry closed",
            extra={
                "entry_id": entry_id,
                "salon_id": removed.salon_id,
                "status": terminal_status.value,
                "reason": reason,
            },
        )
        return removed

    def recompute(self, salon_id: str) -> list[QueueEntry]:
        """Refresh positions and wait estimates of every active entry. Safe to call any time."""
        with self._locks.hold(salon_id):
            return self._rank_and_save(salon_id, self._store.list_active(salon_id), extra=[])

    # -------------------- internals --------------------

    def _rank_and_save(
        self,
        salon_id: str,
        active: list[QueueEntry],
        extra: list[QueueEntry],
        always_save: list[QueueEntry] | None = None,
    ) -> list[QueueEntry]:
        """Caller must hold the salon lock."""
        entries = active + extra
        service_ids = sorted({s for e in entries for s in e.service_ids})
        services = self._directory.get_services(salon_id, service_ids) if service_ids else {}
        ranked = rank_entries(entries, services, self._default_service_minutes)

        previous = {e.id: e for e in active}
        forced = {e.id for e in extra}
        to_save = list(always_save or [])
        to_save += [e for e in ranked if e.id in forced or previous.get(e.id) != e]
        if to_save:
            self._store.save_many(to_save)
        return ranked

    def _audit_transition(self, before: QueueEntry, after: QueueEntry, actor: Actor, reason: str | None) -> None:
        if self._audit is None:
            return
        record = StatusTransitionRecord(
            entry_id=after.id,
            salon_id=after.salon_id,
            user_id=after.user_id,
            old_status=before.status,
            new_status=after.status,
            actor=actor,
            at=self._clock(),
            reason=reason,
        )
        try:
            self._audit.append(record)
        except Exception as e:
            self._logger.exception(
                "Audit record could not be written",
                extra={"entry_id": after.id, "status": after.status.value, "actor": actor.value, "error": str(e)},
            )
