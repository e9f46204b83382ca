from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum


class TrustLevel(str, Enum):
    NEW = "new"
    REGULAR = "regular"
    TRUSTED = "trusted"
    SUSPICIOUS = "suspicious"
    BANNED = "banned"


class ReputationAction(str, Enum):
    SUCCESSFUL_CHECK_IN = "successful_check_in"
    FALSE_CHECK_IN = "false_check_in"
    NO_SHOW = "no_show"
    COMPLETED_SERVICE = "completed_service"


STARTING_SCORE = 50

SCORE_CHANGES: dict[ReputationAction, int] = {
    ReputationAction.SUCCESSFUL_CHECK_IN: 2,
    ReputationAction.FALSE_CHECK_IN: -10,
    ReputationAction.NO_SHOW: -5,
    ReputationAction.COMPLETED_SERVICE: 1,
}

# Suspicious and banned users are never auto-approved.
DEFAULT_APPROVAL_DISTANCES: dict[TrustLevel, float] = {
    TrustLevel.NEW: 50.0,
    TrustLevel.REGULAR: 100.0,
    TrustLevel.TRUSTED: 200.0,
}


def trust_level_for_score(score: int) -> TrustLevel:
    if score >= 90:
        return TrustLevel.TRUSTED
    if score >= 70:
        return TrustLevel.REGULAR
    if score >= 40:
        return TrustLevel.NEW
    if score >= 20:
        return TrustLevel.SUSPICIOUS
    return TrustLevel.BANNED


@dataclass(frozen=True)
class Reputation:
    user_id: str
    score: int = STARTING_SCORE
    total_check_ins: int = 0
    successful_check_ins: int = 0
    false_check_ins: int = 0
    no_shows: int = 0
    completed_services: int = 0
    last_check_in_at: datetime | None = None
    last_no_show_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def trust_level(self) -> TrustLevel:
        return trust_level_for_score(self.score)

    def apply(self, action: ReputationAction, now: datetime) -> "Reputation":
        """Counters for the action plus the score change, clamped to 0..100."""
        score = max(0, min(100, self.score + SCORE_CHANGES[action]))
        if action == ReputationAction.SUCCESSFUL_CHECK_IN:
            return replace(
                self,
                score=score,
                total_check_ins=self.total_check_ins + 1,
                successful_check_ins=self.successful_check_ins + 1,
                last_check_in_at=now,
                updated_at=now,
            )
        if action == ReputationAction.FALSE_CHECK_IN:
            return replace(
                self,
                score=score,
                total_check_ins=self.total_check_ins + 1,
                false_check_ins=self.false_check_ins + 1,
                updated_at=now,
            )
        if action == ReputationAction.NO_SHOW:
            return replace(self, score=score, no_shows=self.no_shows + 1, last_no_show_at=now, updated_at=now)
        return replace(self, score=score, completed_services=self.completed_services + 1, updated_at=now)
