from __future__ import annotations

import pytest

from app.application.exceptions import InvalidRequest
from app.application.use_cases.loyalty import LoyaltyUseCase
from app.domain.entities.loyalty import LoyaltyTier, tier_for_points
from app.infrastructure.store.memory_store import MemoryLoyaltyStore


@pytest.mark.parametrize(
    "points, tier",
    [(0, LoyaltyTier.NONE), (49, LoyaltyTier.NONE), (50, LoyaltyTier.SILVER), (99, LoyaltyTier.SILVER), (100, LoyaltyTier.GOLD)],
)
def test_tier_thresholds(points, tier):
    assert tier_for_points(points) == tier


def test_accrue_is_idempotent_per_entry():
    loyalty = LoyaltyUseCase(store=MemoryLoyaltyStore())

    loyalty.accrue("user-1", "salon-1", "entry-1")
    balance = loyalty.accrue("user-1", "salon-1", "entry-1")

    assert balance.points == 25
    assert balance.tier == LoyaltyTier.NONE


def test_balances_are_per_salon():
    loyalty = LoyaltyUseCase(store=MemoryLoyaltyStore(), points_per_completion=30)
    loyalty.accrue("user-1", "salon-1", "entry-1")
    loyalty.accrue("user-1", "salon-1", "entry-2")

    assert loyalty.balance("user-1", "salon-1").points == 60
    assert loyalty.tier("user-1", "salon-1") == LoyaltyTier.SILVER
    assert loyalty.balance("user-1", "salon-2").points == 0


def test_accrue_never_decrements():
    loyalty = LoyaltyUseCase(store=MemoryLoyaltyStore())
    loyalty.accrue("user-1", "salon-1", "entry-1")

    for bad in (0, -10):
        with pytest.raises(InvalidRequest):
            loyalty.accrue("user-1", "salon-1", f"entry-{bad}", points=bad)
    assert loyalty.balance("user-1", "salon-1").points == 25
