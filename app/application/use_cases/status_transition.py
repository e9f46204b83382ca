from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Mapping

from app.application.exceptions import InvalidRequest, InvalidTransition
from app.application.ports.directory import DirectoryPort
from app.application.ports.dispatch_scheduler import DispatchSchedulerPort
from app.application.use_cases.loyalty import LoyaltyUseCase
from app.application.use_cases.queue_ledger import QueueLedgerUseCase
from app.application.use_cases.reputation import ReputationUseCase
from app.application.utils.clock import Clock, utc_now
from app.application.utils.geo import haversine_meters
from app.domain.entities.audit import Actor
from app.domain.entities.notification import DispatchRequest, NotificationChannel, NotificationEvent
from app.domain.entities.queue_entry import QueueEntry
from app.domain.entities.queue_status import ACTIVE_STATUSES, QueueStatus, can_transition
from app.domain.entities.reputation import DEFAULT_APPROVAL_DISTANCES, ReputationAction, TrustLevel

NO_SHOW_FROM = ACTIVE_STATUSES - {QueueStatus.WAITING}
CANCEL_FROM = frozenset(
    {QueueStatus.WAITING, QueueStatus.NOTIFIED, QueueStatus.PENDING_VERIFICATION, QueueStatus.NEARBY}
)


@dataclass(frozen=True)
class CheckInResult:
    entry: QueueEntry
    auto_approved: bool
    requires_confirmation: bool
    distance_m: float | None
    message: str
    trust_level: TrustLevel = TrustLevel.NEW


def _guard(entry: QueueEntry, target: QueueStatus) -> None:
    if not can_transition(entry.status, target):
        raise InvalidTransition(
            f"Cannot move entry {entry.id} from {entry.status.value} to {target.value}"
        )


class StatusTransitionUseCase:
    """
    Lifecycle of a queue entry.

    Every change goes through the ledger's salon lock; notification
    scheduling, loyalty accrual and reputation updates happen only after the
    change is stored and their failures never undo it.
    """

    def __init__(
        self,
        ledger: QueueLedgerUseCase,
        directory: DirectoryPort,
        scheduler: DispatchSchedulerPort,
        loyalty: LoyaltyUseCase,
        reputation: ReputationUseCase,
        notify_channels: tuple[NotificationChannel, ...] = (
            NotificationChannel.PUSH,
            NotificationChannel.SMS,
            NotificationChannel.EMAIL,
        ),
        approval_distances: Mapping[TrustLevel, float] | None = None,
        check_in_max_distance_meters: float = 500.0,
        default_arrival_minutes: int = 10,
        clock: Clock = utc_now,
    ) -> None:
        self._ledger = ledger
        self._directory = directory
        self._scheduler = scheduler
        self._loyalty = loyalty
        self._reputation = reputation
        self._notify_channels = tuple(c for c in notify_channels if not c.is_manual)
        self._approval_distances = dict(DEFAULT_APPROVAL_DISTANCES if approval_distances is None else approval_distances)
        self._max_distance_m = check_in_max_distance_meters
        self._default_arrival_minutes = default_arrival_minutes
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    def notify(self, entry_id: str, arrival_minutes: int | None = None, actor: Actor = Actor.STAFF) -> QueueEntry:
        minutes = self._default_arrival_minutes if arrival_minutes is None else arrival_minutes
        if minutes < 0:
            raise InvalidRequest("arrival_minutes must not be negative")

        def _notify(entry: QueueEntry) -> QueueEntry:
            _guard(entry, QueueStatus.NOTIFIED)
            return replace(entry, status=QueueStatus.NOTIFIED, notified_at=self._clock(), arrival_minutes=minutes)

        entry = self._ledger.mutate(entry_id, _notify, actor=actor)
        self._log_change(entry)
        self._schedule(entry, NotificationEvent.NOTIFY, minutes)
        return entry

    def remind(self, entry_id: str, arrival_minutes: int | None = None) -> QueueEntry:
        """Re-send the notification for a live entry without touching its status."""
        entry = self._ledger.get(entry_id)
        if not entry.is_active:
            raise InvalidTransition(f"Queue entry {entry_id} is already {entry.status.value}")
        minutes = arrival_minutes if arrival_minutes is not None else entry.arrival_minutes
        self._schedule(entry, NotificationEvent.REMINDER, minutes)
        return entry

    def check_in(
        self,
        entry_id: str,
        latitude: float | None = None,
        longitude: float | None = None,
        actor: Actor = Actor.CUSTOMER,
    ) -> CheckInResult:
        """
        Customer says they have arrived.

        Banned customers cannot check in. Within the approval distance of the
        customer's trust level the arrival is accepted at once; suspicious
        customers, check-ins without a location and anything up to the
        maximum distance wait for staff. Farther away is rejected.
        """
        entry = self._ledger.get(entry_id)
        if entry.status != QueueStatus.NOTIFIED:
            raise InvalidTransition(f"Check-in is only possible after being notified, entry is {entry.status.value}")

        trust = self._reputation.trust_level(entry.user_id)
        if trust == TrustLevel.BANNED:
            raise InvalidRequest("This account cannot check in. Please speak to the front desk.")

        distance: float | None = None
        salon = self._directory.get_salon(entry.salon_id)
        if latitude is not None and longitude is not None and salon is not None and salon.has_location:
            distance = haversine_meters(latitude, longitude, salon.latitude, salon.longitude)
            if distance > self._max_distance_m:
                raise InvalidRequest(
                    f"You are {round(distance)} m away. Please come within {round(self._max_distance_m)} m to check in."
                )

        approve_within = self._approval_distances.get(trust)
        auto_approved = distance is not None and approve_within is not None and distance <= approve_within
        target = QueueStatus.NEARBY if auto_approved else QueueStatus.PENDING_VERIFICATION

        def _check_in(current: QueueEntry) -> QueueEntry:
            _guard(current, target)
            now = self._clock()
            return replace(
                current,
                status=target,
                check_in_at=now,
                check_in_distance_m=distance,
                verified_at=now if auto_approved else current.verified_at,
            )

        updated = self._ledger.mutate(entry_id, _check_in, actor=actor)
        self._log_change(updated)
        if auto_approved:
            self._record_reputation(updated, ReputationAction.SUCCESSFUL_CHECK_IN)
            message = "Check-in confirmed. Please let the front desk know you are here."
        elif trust == TrustLevel.SUSPICIOUS:
            message = "Check-in received. Staff need to confirm your arrival for this account."
        else:
            message = "Check-in received. Staff will confirm your arrival."
        return CheckInResult(
            entry=updated,
            auto_approved=auto_approved,
            requires_confirmation=not auto_approved,
            distance_m=distance,
            message=message,
            trust_level=trust,
        )

    def verify_arrival(
        self,
        entry_id: str,
        confirmed: bool,
        notes: str | None = None,
        actor: Actor = Actor.STAFF,
    ) -> QueueEntry:
        if not confirmed:
            entry = self._ledger.remove(
                entry_id,
                QueueStatus.NO_SHOW,
                reason=notes or "Arrival not confirmed by staff",
                allowed_from=[QueueStatus.PENDING_VERIFICATION],
                actor=actor,
            )
            self._record_reputation(entry, ReputationAction.FALSE_CHECK_IN)
            return entry

        def _verify(entry: QueueEntry) -> QueueEntry:
            if entry.status != QueueStatus.PENDING_VERIFICATION:
                raise InvalidTransition(f"Entry {entry.id} is not waiting for arrival verification")
            return replace(entry, status=QueueStatus.NEARBY, verified_at=self._clock())

        entry = self._ledger.mutate(entry_id, _verify, actor=actor, reason=notes)
        self._log_change(entry)
        self._record_reputation(entry, ReputationAction.SUCCESSFUL_CHECK_IN)
        return entry

    def start_service(self, entry_id: str, actor: Actor = Actor.STAFF) -> QueueEntry:
        def _start(entry: QueueEntry) -> QueueEntry:
            _guard(entry, QueueStatus.IN_PROGRESS)
            return replace(entry, status=QueueStatus.IN_PROGRESS, started_at=self._clock())

        entry = self._ledger.mutate(entry_id, _start, actor=actor)
        self._log_change(entry)
        return entry

    def complete(self, entry_id: str, actor: Actor = Actor.STAFF) -> QueueEntry:
        entry = self._ledger.remove(
            entry_id, QueueStatus.COMPLETED, allowed_from=[QueueStatus.IN_PROGRESS], actor=actor
        )
        try:
            self._loyalty.accrue(entry.user_id, entry.salon_id, entry.id)
        except Exception as e:
            self._logger.exception(
                "Loyalty accrual failed",
                extra={"entry_id": entry.id, "user_id": entry.user_id, "salon_id": entry.salon_id, "error": str(e)},
            )
        self._record_reputation(entry, ReputationAction.COMPLETED_SERVICE)
        return entry

    def mark_no_show(
        self,
        entry_id: str,
        reason: str | None = None,
        only_from: frozenset[QueueStatus] | None = None,
        actor: Actor = Actor.STAFF,
    ) -> QueueEntry:
        entry = self._ledger.remove(
            entry_id,
            QueueStatus.NO_SHOW,
            reason=reason or "Did not arrive",
            allowed_from=NO_SHOW_FROM if only_from is None else NO_SHOW_FROM & only_from,
            actor=actor,
        )
        self._record_reputation(entry, ReputationAction.NO_SHOW)
        return entry

    def cancel(self, entry_id: str, reason: str | None = None, actor: Actor = Actor.CUSTOMER) -> QueueEntry:
        return self._ledger.remove(
            entry_id,
            QueueStatus.CANCELLED,
            reason=reason or "Cancelled",
            allowed_from=CANCEL_FROM,
            actor=actor,
        )

    def transition(
        self,
        entry_id: str,
        target: QueueStatus,
        reason: str | None = None,
        arrival_minutes: int | None = None,
        actor: Actor = Actor.STAFF,
    ) -> QueueEntry:
        """Route a requested target status to the operation that owns it."""
        if target == QueueStatus.NOTIFIED:
            return self.notify(entry_id, arrival_minutes, actor=actor)
        if target == QueueStatus.PENDING_VERIFICATION:
            return self.check_in(entry_id, actor=actor).entry
        if target == QueueStatus.NEARBY:
            current = self._ledger.get(entry_id)
            if current.status == QueueStatus.PENDING_VERIFICATION:
                return self.verify_arrival(entry_id, confirmed=True, notes=reason, actor=actor)
            return self._move_nearby(entry_id, actor, reason)
        if target == QueueStatus.IN_PROGRESS:
            return self.start_service(entry_id, actor=actor)
        if target == QueueStatus.COMPLETED:
            return self.complete(entry_id, actor=actor)
        if target == QueueStatus.NO_SHOW:
            return self.mark_no_show(entry_id, reason, actor=actor)
        if target == QueueStatus.CANCELLED:
            return self.cancel(entry_id, reason, actor=actor)

        current = self._ledger.get(entry_id)
        raise InvalidTransition(f"Cannot move entry {entry_id} from {current.status.value} to {target.value}")

    # -------------------- internals --------------------

    def _move_nearby(self, entry_id: str, actor: Actor, reason: str | None) -> QueueEntry:
        """Staff marking a notified customer as arrived without a check-in."""

        def _nearby(entry: QueueEntry) -> QueueEntry:
            _guard(entry, QueueStatus.NEARBY)
            now = self._clock()
            return replace(entry, status=QueueStatus.NEARBY, check_in_at=entry.check_in_at or now, verified_at=now)

        entry = self._ledger.mutate(entry_id, _nearby, actor=actor, reason=reason)
        self._log_change(entry)
        return entry

    def _record_reputation(self, entry: QueueEntry, action: ReputationAction) -> None:
        try:
            self._reputation.record(entry.user_id, action)
        except Exception as e:
            self._logger.exception(
                "Reputation update failed",
                extra={"entry_id": entry.id, "user_id": entry.user_id, "reason": action.value, "error": str(e)},
            )

    def _schedule(self, entry: QueueEntry, event: NotificationEvent, arrival_minutes: int | None) -> None:
        if not self._notify_channels:
            return
        request = DispatchRequest(
            entry_id=entry.id,
            event=event,
            arrival_minutes=arrival_minutes,
            channels=self._notify_channels,
        )
        try:
            accepted = self._scheduler.submit(request)
        except Exception as e:
            self._logger.exception("Dispatch scheduling failed", extra={"entry_id": entry.id, "error": str(e)})
            return
        if not accepted:
            self._logger.warning("Dispatch request dropped", extra={"entry_id": entry.id, "reason": event.value})

    def _log_change(self, entry: QueueEntry) -> None:
        self._logger.info(
            "Queue status changed",
            extra={"entry_id": entry.id, "salon_id": entry.salon_id, "status": entry.status.value},
        )
