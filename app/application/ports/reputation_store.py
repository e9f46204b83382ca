from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from app.domain.entities.reputation import Reputation


class ReputationStorePort(ABC):
    @abstractmethod
    def get(self, user_id: str) -> Reputation | None:
        raise NotImplementedError

    @abstractmethod
    def update(self, user_id: str, fn: Callable[[Reputation], Reputation]) -> Reputation:
        """
        Atomic read-modify-write. fn receives the stored record, or a fresh
        Reputation(user_id) when there is none, and its result is stored.
        """
        raise NotImplementedError
