from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class OTPChannel(str, Enum):
    EMAIL = "email"
    PHONE = "phone"


@dataclass(frozen=True)
class OTPChallenge:
    user_id: str
    channel: OTPChannel
    code_hash: str
    issued_at: datetime
    expires_at: datetime
    attempts_remaining: int

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class VerificationStatus:
    user_id: str
    verified_channels: frozenset[OTPChannel]
    required_channels: frozenset[OTPChannel]

    @property
    def fully_verified(self) -> bool:
        return self.required_channels <= self.verified_channels
