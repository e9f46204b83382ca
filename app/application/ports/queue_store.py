from __future__ import annotations

from abc import ABC, abstractmethod

from app.domain.entities.queue_entry import QueueEntry
from app.domain.entities.queue_status import QueueStatus


class QueueStorePort(ABC):
    @abstractmethod
    def get(self, entry_id: str) -> QueueEntry | None:
        raise NotImplementedError

    @abstractmethod
    def save(self, entry: QueueEntry) -> None:
        raise NotImplementedError

    @abstractmethod
    def save_many(self, entries: list[QueueEntry]) -> None:
        """Persist several entries of one salon as a single write."""
        raise NotImplementedError

    @abstractmethod
    def list_active(self, salon_id: str) -> list[QueueEntry]:
        """Non-terminal entries of a salon, in no particular order."""
        raise NotImplementedError

    @abstractmethod
    def find_active_for_user(self, salon_id: str, user_id: str) -> QueueEntry | None:
        raise NotImplementedError

    @abstractmethod
    def list_for_user(self, user_id: str) -> list[QueueEntry]:
        raise NotImplementedError

    @abstractmethod
    def list_by_status(self, status: QueueStatus) -> list[QueueEntry]:
        raise NotImplementedError
