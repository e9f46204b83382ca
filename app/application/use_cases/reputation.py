from __future__ import annotations

import logging

from app.application.ports.reputation_store import ReputationStorePort
from app.application.utils.clock import Clock, utc_now
from app.domain.entities.reputation import Reputation, ReputationAction, TrustLevel


class ReputationUseCase:
    """
    Per-customer arrival reliability, shared by every salon.

    The score starts at 50 and moves with check-ins, no-shows and completed
    visits; the trust level derived from it decides how far away a check-in
    may be auto-approved.
    """

    def __init__(self, store: ReputationStorePort, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    def get(self, user_id: str) -> Reputation:
        return self._store.get(user_id) or Reputation(user_id=user_id)

    def trust_level(self, user_id: str) -> TrustLevel:
        return self.get(user_id).trust_level

    def record(self, user_id: str, action: ReputationAction) -> Reputation:
        now = self._clock()
        updated = self._store.update(user_id, lambda current: current.apply(action, now))
        self._logger.info(
            "Reputation updated",
            extra={
                "user_id": user_id,
                "reason": action.value,
                "score": updated.score,
                "trust_level": updated.trust_level.value,
            },
        )
        return updated
