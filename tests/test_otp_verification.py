"""
Tests for one-time code issue and verification.
"""

from __future__ import annotations

import threading

import pytest

from app.application.exceptions import (
    ChallengeNotFound,
    Expired,
    InvalidRequest,
    Mismatch,
    NoAttemptsLeft,
    PermanentDeliveryError,
    RateLimited,
)
from app.application.ports.transports import SmsTransportPort
from app.application.use_cases.notification_dispatch import NotificationDispatchUseCase
from app.application.use_cases.otp_verification import OTPVerificationUseCase
from app.domain.entities.otp_challenge import OTPChannel
from app.infrastructure.messaging.mock_transports import MockEmailTransport, MockPushGateway, MockSmsTransport
from app.infrastructure.store.memory_store import MemoryNotificationLog, MemoryOTPStore, MemoryPushRegistry


def _otp(engine, ttl_minutes: int = 5, max_attempts: int = 3, sms=None):
    sms = sms or MockSmsTransport()
    email = MockEmailTransport()
    dispatcher = NotificationDispatchUseCase(
        store=engine.store,
        directory=engine.directory,
        log=MemoryNotificationLog(),
        push_registry=MemoryPushRegistry(),
        sms=sms,
        email=email,
        push_gateway=MockPushGateway(),
        clock=engine.clock,
        sleep=lambda _: None,
    )
    store = MemoryOTPStore()
    otp = OTPVerificationUseCase(
        store=store,
        directory=engine.directory,
        dispatcher=dispatcher,
        hash_secret="test-secret",
        ttl_minutes=ttl_minutes,
        max_attempts=max_attempts,
        resend_cooldown_seconds=30,
        expose_code=True,
        clock=engine.clock,
    )
    return otp, store, sms, email


def _wrong(code: str) -> str:
    return "0" * len(code) if code != "0" * len(code) else "1" * len(code)


def test_email_and_phone_verification_marks_user_verified(engine):
    otp, _, sms, email = _otp(engine)

    issued = otp.issue("user-1", OTPChannel.EMAIL)
    assert issued.delivered is True
    assert len(issued.code) == 6 and issued.code.isdigit()
    assert email.sent[0][0] == "alex@example.com"
    assert issued.code in email.sent[0][2]

    status = otp.verify("user-1", OTPChannel.EMAIL, issued.code)
    assert status.fully_verified is False

    phone_code = otp.issue("user-1", OTPChannel.PHONE).code
    assert sms.sent[0][0] == "+15550000001"
    status = otp.verify("user-1", OTPChannel.PHONE, phone_code)
    assert status.fully_verified is True
    assert otp.status("user-1").verified_channels == {OTPChannel.EMAIL, OTPChannel.PHONE}


def test_code_is_stored_hashed(engine):
    otp, store, _, _ = _otp(engine)
    issued = otp.issue("user-1", OTPChannel.EMAIL)

    challenge = store.get("user-1", OTPChannel.EMAIL)
    assert challenge.code_hash != issued.code


def test_verify_after_ttl_is_expired(engine):
    otp, _, _, _ = _otp(engine, ttl_minutes=10)
    issued = otp.issue("user-1", OTPChannel.EMAIL)

    engine.clock.advance(minutes=11)
    with pytest.raises(Expired):
        otp.verify("user-1", OTPChannel.EMAIL, issued.code)


def test_mismatch_counts_down_then_locks(engine):
    otp, _, _, _ = _otp(engine, max_attempts=3)
    code = otp.issue("user-1", OTPChannel.EMAIL).code

    for remaining in (2, 1, 0):
        with pytest.raises(Mismatch) as exc:
            otp.verify("user-1", OTPChannel.EMAIL, _wrong(code))
        assert exc.value.attempts_remaining == remaining

    with pytest.raises(NoAttemptsLeft):
        otp.verify("user-1", OTPChannel.EMAIL, code)


def test_reissue_resets_attempts(engine):
    otp, _, _, _ = _otp(engine, max_attempts=1)
    code = otp.issue("user-1", OTPChannel.PHONE).code
    with pytest.raises(Mismatch):
        otp.verify("user-1", OTPChannel.PHONE, _wrong(code))
    with pytest.raises(NoAttemptsLeft):
        otp.verify("user-1", OTPChannel.PHONE, code)

    engine.clock.advance(seconds=31)
    fresh = otp.issue("user-1", OTPChannel.PHONE).code
    status = otp.verify("user-1", OTPChannel.PHONE, fresh)
    assert OTPChannel.PHONE in status.verified_channels


def test_reissue_within_cooldown_is_rate_limited(engine):
    otp, _, _, _ = _otp(engine)
    otp.issue("user-1", OTPChannel.EMAIL)
    engine.clock.advance(seconds=10)

    with pytest.raises(RateLimited) as exc:
        otp.issue("user-1", OTPChannel.EMAIL)
    assert exc.value.retry_after == 20

    # the other channel has its own cooldown
    otp.issue("user-1", OTPChannel.PHONE)


def test_verified_code_cannot_be_reused(engine):
    otp, _, _, _ = _otp(engine)
    code = otp.issue("user-1", OTPChannel.EMAIL).code
    otp.verify("user-1", OTPChannel.EMAIL, code)

    with pytest.raises(ChallengeNotFound):
        otp.verify("user-1", OTPChannel.EMAIL, code)


def test_issue_requires_known_user_with_address(engine):
    otp, _, _, _ = _otp(engine)

    with pytest.raises(InvalidRequest):
        otp.issue("nobody", OTPChannel.EMAIL)
    with pytest.raises(InvalidRequest):
        otp.issue("user-4", OTPChannel.PHONE)


def test_non_numeric_code_is_rejected(engine):
    otp, _, _, _ = _otp(engine)
    otp.issue("user-1", OTPChannel.EMAIL)

    with pytest.raises(InvalidRequest):
        otp.verify("user-1", OTPChannel.EMAIL, "12ab56")


def test_purge_expired_drops_dead_challenges(engine):
    otp, store, _, _ = _otp(engine, ttl_minutes=5)
    otp.issue("user-1", OTPChannel.EMAIL)
    otp.issue("user-2", OTPChannel.EMAIL)

    engine.clock.advance(minutes=6)
    assert otp.purge_expired() == 2
    assert store.get("user-1", OTPChannel.EMAIL) is None


def _verify_together(otp, user_id: str, channel: OTPChannel, codes: list[str]) -> list:
    barrier = threading.Barrier(len(codes))
    results: list = [None] * len(codes)

    def _worker(i: int) -> None:
        barrier.wait()
        try:
            results[i] = otp.verify(user_id, channel, codes[i])
        except Exception as e:
            results[i] = e

    threads = [threading.Thread(target=_worker, args=(i,)) for i in range(len(codes))]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    return results


def test_concurrent_correct_codes_verify_once(engine):
    otp, _, _, _ = _otp(engine, max_attempts=1)
    code = otp.issue("user-1", OTPChannel.EMAIL).code

    results = _verify_together(otp, "user-1", OTPChannel.EMAIL, [code] * 20)

    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(successes) == 1
    assert all(isinstance(r, ChallengeNotFound) for r in results if isinstance(r, Exception))


def test_concurrent_guesses_spend_a_single_attempt(engine):
    otp, _, _, _ = _otp(engine, max_attempts=1)
    code = otp.issue("user-1", OTPChannel.PHONE).code
    wrong = _wrong(code)

    results = _verify_together(otp, "user-1", OTPChannel.PHONE, [wrong] * 19 + [code])

    mismatches = [r for r in results if isinstance(r, Mismatch)]
    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(mismatches) + len(successes) == 1
    assert all(isinstance(r, (Mismatch, NoAttemptsLeft, ChallengeNotFound)) for r in results if isinstance(r, Exception))


class RejectingSms(SmsTransportPort):
    def send_sms(self, to_phone: str, body: str) -> None:
        raise PermanentDeliveryError("number not reachable", status_code=400)


def test_failed_code_delivery_is_reported(engine):
    otp, _, _, _ = _otp(engine, sms=RejectingSms())

    issued = otp.issue("user-1", OTPChannel.PHONE)

    assert issued.delivered is False
    assert issued.delivery_attempts == 1
    assert "number not reachable" in issued.delivery_error


def test_purge_forgets_old_resend_stamps(engine):
    otp, store, _, _ = _otp(engine, ttl_minutes=5)
    otp.issue("user-1", OTPChannel.EMAIL)

    engine.clock.advance(seconds=20)
    otp.purge_expired()
    assert store.last_issued_at("user-1", OTPChannel.EMAIL) is not None

    engine.clock.advance(minutes=6)
    otp.purge_expired()
    assert store.last_issued_at("user-1", OTPChannel.EMAIL) is None
    otp.issue("user-1", OTPChannel.EMAIL)
