from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from app.domain.entities.notification import (
    DeliveryOutcome,
    NotificationChannel,
    NotificationEvent,
    NotificationRecord,
)


class NotificationLogPort(ABC):
    @abstractmethod
    def claim(
        self,
        entry_id: str,
        channel: NotificationChannel,
        event: NotificationEvent,
        now: datetime,
        dedupe_seconds: float,
    ) -> NotificationRecord | None:
        """
        Atomic check-and-set for automated sends.
        Returns the new PENDING record, or None when a non-failed attempt for
        (entry_id, channel) happened within dedupe_seconds.
        """
        raise NotImplementedError

    @abstractmethod
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
        """Write the outcome; attempts are added to the running attempt count."""
        raise NotImplementedError

    @abstractmethod
    def get(self, entry_id: str, channel: NotificationChannel) -> NotificationRecord | None:
        raise NotImplementedError

    @abstractmethod
    def list_for_entry(self, entry_id: str) -> list[NotificationRecord]:
        raise NotImplementedError
