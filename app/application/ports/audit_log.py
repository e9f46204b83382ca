from __future__ import annotations

from abc import ABC, abstractmethod

from app.domain.entities.audit import StatusTransitionRecord


class AuditLogPort(ABC):
    @abstractmethod
    def append(self, record: StatusTransitionRecord) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_for_entry(self, entry_id: str) -> list[StatusTransitionRecord]:
        """Oldest first."""
        raise NotImplementedError
