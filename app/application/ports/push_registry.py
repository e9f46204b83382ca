from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from app.domain.entities.push_subscription import PushSubscription


class PushRegistryPort(ABC):
    @abstractmethod
    def save(self, subscription: PushSubscription) -> None:
        """Upsert keyed by (user_id, endpoint)."""
        raise NotImplementedError

    @abstractmethod
    def remove(self, user_id: str, endpoint: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def live_for(self, user_id: str, now: datetime) -> list[PushSubscription]:
        """Subscriptions that have not expired. Expired rows are pruned on the way."""
        raise NotImplementedError

    @abstractmethod
    def touch(self, user_id: str, endpoint: str, now: datetime) -> None:
        raise NotImplementedError

    @abstractmethod
    def prune_expired(self, now: datetime) -> int:
        raise NotImplementedError
