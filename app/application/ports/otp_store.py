from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from app.domain.entities.otp_challenge import OTPChallenge, OTPChannel


class OTPStorePort(ABC):
    @abstractmethod
    def get(self, user_id: str, channel: OTPChannel) -> OTPChallenge | None:
        raise NotImplementedError

    @abstractmethod
    def put(self, challenge: OTPChallenge) -> None:
        """Store a challenge, replacing any live one for the same (user, channel)."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, user_id: str, channel: OTPChannel) -> None:
        raise NotImplementedError

    @abstractmethod
    def last_issued_at(self, user_id: str, channel: OTPChannel) -> datetime | None:
        raise NotImplementedError

    @abstractmethod
    def mark_verified(self, user_id: str, channel: OTPChannel) -> None:
        raise NotImplementedError

    @abstractmethod
    def verified_channels(self, user_id: str) -> set[OTPChannel]:
        raise NotImplementedError

    @abstractmethod
    def purge_expired(self, now: datetime, issued_before: datetime | None = None) -> int:
        """
        Drop expired challenges and return how many. Resend stamps older than
        issued_before are forgotten too.
        """
        raise NotImplementedError
