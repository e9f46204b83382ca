from __future__ import annotations

import hashlib
import hmac
import logging
import math
import secrets
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Iterable

from app.application.exceptions import (
    ChallengeNotFound,
    Expired,
    InvalidRequest,
    Mismatch,
    NoAttemptsLeft,
    RateLimited,
)
from app.application.ports.directory import DirectoryPort
from app.application.ports.otp_store import OTPStorePort
from app.application.use_cases.notification_dispatch import NotificationDispatchUseCase
from app.application.utils.clock import Clock, utc_now
from app.application.utils.keyed_lock import KeyedLock
from app.domain.entities.notification import DeliveryOutcome
from app.domain.entities.otp_challenge import OTPChallenge, OTPChannel, VerificationStatus


@dataclass(frozen=True)
class OTPIssueResult:
    user_id: str
    channel: OTPChannel
    expires_at: datetime
    delivered: bool
    code: str | None = None  # only when codes are exposed for development
    delivery_attempts: int = 0
    delivery_error: str | None = None


class OTPVerificationUseCase:
    """
    One-time codes proving a customer owns an email address or phone number.

    Codes are stored as keyed hashes only. Issue and verify for the same
    (user, channel) are serialized so attempt counts cannot be raced.
    """

    def __init__(
        self,
        store: OTPStorePort,
        directory: DirectoryPort,
        dispatcher: NotificationDispatchUseCase,
        hash_secret: str,
        code_length: int = 6,
        ttl_minutes: int = 5,
        max_attempts: int = 5,
        resend_cooldown_seconds: int = 30,
        required_channels: Iterable[OTPChannel] = (OTPChannel.EMAIL, OTPChannel.PHONE),
        expose_code: bool = False,
        clock: Clock = utc_now,
    ) -> None:
        if code_length < 4:
            raise ValueError("code_length must be at least 4")
        self._store = store
        self._directory = directory
        self._dispatcher = dispatcher
        self._secret = hash_secret.encode("utf-8")
        self._code_length = code_length
        self._ttl = timedelta(minutes=ttl_minutes)
        self._ttl_minutes = ttl_minutes
        self._max_attempts = max_attempts
        self._cooldown = resend_cooldown_seconds
        self._required = frozenset(required_channels)
        self._expose_code = expose_code
        self._clock = clock
        self._locks = KeyedLock()
        self._logger = logging.getLogger(__name__)

    def _hash(self, user_id: str, channel: OTPChannel, code: str) -> str:
        msg = f"{user_id}:{channel.value}:{code}".encode("utf-8")
        return hmac.new(self._secret, msg, hashlib.sha256).hexdigest()

    def _generate_code(self) -> str:
        return "".join(secrets.choice("0123456789") for _ in range(self._code_length))

    def issue(self, user_id: str, channel: OTPChannel) -> OTPIssueResult:
        customer = self._directory.get_customer(user_id)
        if customer is None:
            raise InvalidRequest(f"Unknown user {user_id}")
        address = customer.email if channel == OTPChannel.EMAIL else customer.phone
        if not address:
            raise InvalidRequest(f"No {channel.value} on file for user {user_id}")

        with self._locks.hold((user_id, channel)):
            now = self._clock()
            last = self._store.last_issued_at(user_id, channel)
            if last is not None:
                elapsed = (now - last).total_seconds()
                if elapsed < self._cooldown:
                    retry_after = max(1, math.ceil(self._cooldown - elapsed))
                    raise RateLimited(
                        f"Please wait {retry_after} seconds before requesting a new code",
                        retry_after=retry_after,
                    )

            code = self._generate_code()
            challenge = OTPChallenge(
                user_id=user_id,
                channel=channel,
                code_hash=self._hash(user_id, channel, code),
                issued_at=now,
                expires_at=now + self._ttl,
                attempts_remaining=self._max_attempts,
            )
            self._store.put(challenge)

        report = self._dispatcher.send_otp(channel, address, code, self._ttl_minutes, customer.name)
        delivered = report.outcome == DeliveryOutcome.SENT
        log = self._logger.info if delivered else self._logger.warning
        log(
            "OTP issued",
            extra={
                "user_id": user_id,
                "channel": channel.value,
                "outcome": report.outcome.value,
                "attempts": report.attempts,
                "error": report.error,
            },
        )
        return OTPIssueResult(
            user_id=user_id,
            channel=channel,
            expires_at=challenge.expires_at,
            delivered=delivered,
            code=code if self._expose_code else None,
            delivery_attempts=report.attempts,
            delivery_error=report.error,
        )

    def verify(self, user_id: str, channel: OTPChannel, code: str) -> VerificationStatus:
        code = (code or "").strip()
        if not code.isdigit():
            raise InvalidRequest("Code must contain digits only")

        with self._locks.hold((user_id, channel)):
            challenge = self._store.get(user_id, channel)
            if challenge is None:
                raise ChallengeNotFound("No verification code was requested")

            now = self._clock()
            if challenge.is_expired(now):
                self._store.delete(user_id, channel)
                raise Expired("Verification code has expired")
            if challenge.attempts_remaining <= 0:
                raise NoAttemptsLeft("Too many attempts, request a new code")

            if not hmac.compare_digest(challenge.code_hash, self._hash(user_id, channel, code)):
                remaining = challenge.attempts_remaining - 1
                self._store.put(replace(challenge, attempts_remaining=remaining))
                self._logger.info(
                    "OTP mismatch",
                    extra={"user_id": user_id, "channel": channel.value, "attempts_remaining": remaining},
                )
                raise Mismatch("Invalid verification code", attempts_remaining=remaining)

            self._store.delete(user_id, channel)
            self._store.mark_verified(user_id, channel)

        self._logger.info("OTP verified", extra={"user_id": user_id, "channel": channel.value})
        return self.status(user_id)

    def status(self, user_id: str) -> VerificationStatus:
        return VerificationStatus(
            user_id=user_id,
            verified_channels=frozenset(self._store.verified_channels(user_id)),
            required_channels=self._required,
        )

    def purge_expired(self, now: datetime | None = None) -> int:
        now = now or self._clock()
        return self._store.purge_expired(now, issued_before=now - timedelta(seconds=self._cooldown))
