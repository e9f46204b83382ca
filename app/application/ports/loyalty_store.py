from __future__ import annotations

from abc import ABC, abstractmethod


class LoyaltyStorePort(ABC):
    @abstractmethod
    def get_points(self, user_id: str, salon_id: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def add_points(self, user_id: str, salon_id: str, points: int, award_key: str) -> tuple[int, bool]:
        """
        Atomically add points once per award_key.
        Returns (current_total, applied). applied is False if award_key was already used.
        """
        raise NotImplementedError
