from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class LoyaltyTier(str, Enum):
    NONE = "none"
    SILVER = "silver"
    GOLD = "gold"

    @property
    def discount_percent(self) -> int:
        return {LoyaltyTier.NONE: 0, LoyaltyTier.SILVER: 10, LoyaltyTier.GOLD: 20}[self]


@dataclass(frozen=True)
class LoyaltyBalance:
    user_id: str
    salon_id: str
    points: int
    tier: LoyaltyTier


def tier_for_points(points: int, silver_threshold: int = 50, gold_threshold: int = 100) -> LoyaltyTier:
    if points >= gold_threshold:
        return LoyaltyTier.GOLD
    if points >= silver_threshold:
        return LoyaltyTier.SILVER
    return LoyaltyTier.NONE
