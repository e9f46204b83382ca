from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from app.application.exceptions import InvalidTransition, NotFound
from app.application.ports.push_registry import PushRegistryPort
from app.application.ports.queue_store import QueueStorePort
from app.application.use_cases.otp_verification import OTPVerificationUseCase
from app.application.use_cases.status_transition import StatusTransitionUseCase
from app.application.utils.clock import Clock, utc_now
from app.domain.entities.audit import Actor
from app.domain.entities.queue_status import QueueStatus


@dataclass(frozen=True)
class MaintenanceReport:
    no_shows: int
    otp_purged: int
    push_pruned: int


class MaintenanceUseCase:
    def __init__(
        self,
        store: QueueStorePort,
        transitions: StatusTransitionUseCase,
        otp: OTPVerificationUseCase,
        push_registry: PushRegistryPort,
        no_show_timeout_minutes: int = 20,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._transitions = transitions
        self._otp = otp
        self._push_registry = push_registry
        self._no_show_timeout_minutes = no_show_timeout_minutes
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    def run_once(self) -> MaintenanceReport:
        now = self._clock()
        report = MaintenanceReport(
            no_shows=self._sweep_no_shows(now),
            otp_purged=self._otp.purge_expired(now),
            push_pruned=self._push_registry.prune_expired(now),
        )
        if report.no_shows or report.otp_purged or report.push_pruned:
            self._logger.info(
                "Maintenance pass finished",
                extra={"no_shows": report.no_shows, "otp_purged": report.otp_purged, "push_pruned": report.push_pruned},
            )
        return report

    def _sweep_no_shows(self, now: datetime) -> int:
        if self._no_show_timeout_minutes <= 0:
            return 0

        cutoff = now - timedelta(minutes=self._no_show_timeout_minutes)
        reason = f"Did not respond within {self._no_show_timeout_minutes} minutes"
        count = 0
        for entry in self._store.list_by_status(QueueStatus.NOTIFIED):
            if entry.notified_at is None or entry.notified_at > cutoff:
                continue
            try:
                self._transitions.mark_no_show(
                    entry.id, reason, only_from=frozenset({QueueStatus.NOTIFIED}), actor=Actor.SYSTEM
                )
                count += 1
            except (InvalidTransition, NotFound):
                # moved on since we listed it
                continue
        return count
