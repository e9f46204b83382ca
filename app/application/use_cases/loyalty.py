from __future__ import annotations

import logging

from app.application.exceptions import InvalidRequest
from app.application.ports.loyalty_store import LoyaltyStorePort
from app.domain.entities.loyalty import LoyaltyBalance, LoyaltyTier, tier_for_points


class LoyaltyUseCase:
    def __init__(
        self,
        store: LoyaltyStorePort,
        points_per_completion: int = 25,
        silver_threshold: int = 50,
        gold_threshold: int = 100,
    ) -> None:
        self._store = store
        self._points_per_completion = points_per_completion
        self._silver_threshold = silver_threshold
        self._gold_threshold = gold_threshold
        self._logger = logging.getLogger(__name__)

    def accrue(self, user_id: str, salon_id: str, entry_id: str, points: int | None = None) -> LoyaltyBalance:
        """Credit a completed visit. Calling twice for the same entry credits it once."""
        amount = self._points_per_completion if points is None else points
        if amount <= 0:
            raise InvalidRequest("Loyalty points can only be added")

        total, applied = self._store.add_points(user_id, salon_id, amount, award_key=entry_id)
        if applied:
            self._logger.info(
                "Loyalty points accrued",
                extra={"user_id": user_id, "salon_id": salon_id, "entry_id": entry_id, "points": amount, "total": total},
            )
        else:
            self._logger.info(
                "Loyalty points already credited for entry",
                extra={"user_id": user_id, "salon_id": salon_id, "entry_id": entry_id},
            )
        return self._balance(user_id, salon_id, total)

    def balance(self, user_id: str, salon_id: str) -> LoyaltyBalance:
        return self._balance(user_id, salon_id, self._store.get_points(user_id, salon_id))

    def tier(self, user_id: str, salon_id: str) -> LoyaltyTier:
        return self.balance(user_id, salon_id).tier

    def _balance(self, user_id: str, salon_id: str, points: int) -> LoyaltyBalance:
        return LoyaltyBalance(
            user_id=user_id,
            salon_id=salon_id,
            points=points,
            tier=tier_for_points(points, self._silver_threshold, self._gold_threshold),
        )
