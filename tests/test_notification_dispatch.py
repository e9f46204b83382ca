"""
Tests for notification delivery, dedupe and retry behaviour.
"""

from __future__ import annotations

from datetime import timedelta
from urllib.parse import unquote

import pytest

from app.application.exceptions import (
    InvalidRequest,
    InvalidTransition,
    NotFound,
    PermanentDeliveryError,
    SubscriptionGone,
    TransientDeliveryError,
)
from app.application.ports.transports import PushGatewayPort, SmsTransportPort
from app.application.use_cases.notification_dispatch import NotificationDispatchUseCase
from app.application.utils.retry import RetryPolicy
from app.domain.entities.notification import (
    DeliveryOutcome,
    DispatchRequest,
    NotificationChannel,
    NotificationEvent,
)
from app.domain.entities.push_subscription import PushSubscription
from app.infrastructure.messaging.mock_transports import MockEmailTransport, MockPushGateway, MockSmsTransport
from app.infrastructure.store.memory_store import MemoryNotificationLog, MemoryPushRegistry


class FailingSms(SmsTransportPort):
    def __init__(self, error: Exception, fail_times: int = 1000) -> None:
        self.error = error
        self.fail_times = fail_times
        self.calls = 0
        self.sent: list[tuple[str, str]] = []

    def send_sms(self, to_phone: str, body: str) -> None:
        self.calls += 1
        if self.calls <= self.fail_times:
            raise self.error
        self.sent.append((to_phone, body))


class GoneForEndpoint(PushGatewayPort):
    def __init__(self, gone_endpoint: str) -> None:
        self.gone_endpoint = gone_endpoint
        self.sent: list[str] = []

    def send_push(self, subscription, payload) -> None:
        if subscription.endpoint == self.gone_endpoint:
            raise SubscriptionGone("gone")
        self.sent.append(subscription.endpoint)


def _dispatcher(engine, sms=None, push_gateway=None, push_registry=None, dedupe_seconds=60.0):
    sleeps: list[float] = []
    dispatcher = NotificationDispatchUseCase(
        store=engine.store,
        directory=engine.directory,
        log=MemoryNotificationLog(),
        push_registry=push_registry or MemoryPushRegistry(),
        sms=sms or MockSmsTransport(),
        email=MockEmailTransport(),
        push_gateway=push_gateway or MockPushGateway(),
        retry_policy=RetryPolicy(max_attempts=3, initial_delay=1.0, multiplier=2.0, max_delay=30.0),
        dedupe_seconds=dedupe_seconds,
        clock=engine.clock,
        sleep=sleeps.append,
    )
    return dispatcher, sleeps


def _notify_request(entry_id: str, *channels: NotificationChannel) -> DispatchRequest:
    return DispatchRequest(
        entry_id=entry_id,
        event=NotificationEvent.NOTIFY,
        arrival_minutes=10,
        channels=channels or (NotificationChannel.SMS,),
    )


def test_duplicate_notify_within_window_sends_once(engine):
    sms = MockSmsTransport()
    dispatcher, _ = _dispatcher(engine, sms=sms)
    entry = engine.ledger.enqueue("salon-1", "user-1", ["svc-haircut", "svc-beard"])
    engine.transitions.notify(entry.id, arrival_minutes=10)

    first = dispatcher.dispatch(_notify_request(entry.id))
    engine.clock.advance(seconds=30)
    second = dispatcher.dispatch(_notify_request(entry.id))

    assert first == {NotificationChannel.SMS: DeliveryOutcome.SENT}
    assert second == {}
    assert len(sms.sent) == 1
    to_phone, body = sms.sent[0]
    assert to_phone == "+15550000001"
    assert "Alex" in body and "Classic Cuts" in body
    assert "Haircut, Beard Trim" in body
    assert "in 10 minutes" in body

    engine.clock.advance(seconds=31)
    third = dispatcher.dispatch(_notify_request(entry.id))
    assert third == {NotificationChannel.SMS: DeliveryOutcome.SENT}
    assert len(sms.sent) == 2


def test_transient_sms_failures_are_retried_up_to_the_bound(engine):
    sms = FailingSms(TransientDeliveryError("503"))
    dispatcher, sleeps = _dispatcher(engine, sms=sms)
    entry = engine.ledger.enqueue("salon-1", "user-1", ["svc-haircut"])

    result = dispatcher.dispatch(_notify_request(entry.id))

    assert result[NotificationChannel.SMS] == DeliveryOutcome.FAILED
    assert sms.calls == 3
    assert sleeps == [1.0, 2.0]
    record = dispatcher.records_for(entry.id)[0]
    assert record.attempt_count == 3
    assert record.outcome == DeliveryOutcome.FAILED
    assert "503" in record.last_error


def test_transient_failure_then_success_is_sent(engine):
    sms = FailingSms(TransientDeliveryError("timeout"), fail_times=2)
    dispatcher, sleeps = _dispatcher(engine, sms=sms)
    entry = engine.ledger.enqueue("salon-1", "user-1", ["svc-haircut"])

    result = dispatcher.dispatch(_notify_request(entry.id))

    assert result[NotificationChannel.SMS] == DeliveryOutcome.SENT
    assert len(sms.sent) == 1
    assert len(sleeps) == 2


def test_permanent_failure_is_recorded_not_raised(engine):
    sms = FailingSms(PermanentDeliveryError("invalid number", status_code=400))
    dispatcher, sleeps = _dispatcher(engine, sms=sms)
    entry = engine.ledger.enqueue("salon-1", "user-1", ["svc-haircut"])

    result = dispatcher.dispatch(_notify_request(entry.id))

    assert result[NotificationChannel.SMS] == DeliveryOutcome.FAILED
    assert sms.calls == 1
    assert sleeps == []


def test_failed_send_is_not_deduped(engine):
    sms = FailingSms(PermanentDeliveryError("rejected"), fail_times=1)
    dispatcher, _ = _dispatcher(engine, sms=sms)
    entry = engine.ledger.enqueue("salon-1", "user-1", ["svc-haircut"])

    dispatcher.dispatch(_notify_request(entry.id))
    again = dispatcher.dispatch(_notify_request(entry.id))

    assert again[NotificationChannel.SMS] == DeliveryOutcome.SENT
    assert dispatcher.records_for(entry.id)[0].attempt_count == 2


def test_missing_address_is_skipped(engine):
    dispatcher, _ = _dispatcher(engine)
    entry = engine.ledger.enqueue("salon-1", "user-4", ["svc-haircut"])

    result = dispatcher.dispatch(_notify_request(entry.id, NotificationChannel.SMS, NotificationChannel.EMAIL))

    assert result[NotificationChannel.SMS] == DeliveryOutcome.SKIPPED
    assert result[NotificationChannel.EMAIL] == DeliveryOutcome.SENT


def test_terminal_entry_is_skipped(engine):
    sms = MockSmsTransport()
    dispatcher, _ = _dispatcher(engine, sms=sms)
    entry = engine.ledger.enqueue("salon-1", "user-1", ["svc-haircut"])
    engine.transitions.cancel(entry.id)

    result = dispatcher.dispatch(_notify_request(entry.id))

    assert result[NotificationChannel.SMS] == DeliveryOutcome.SKIPPED
    assert sms.sent == []


def test_gone_push_subscription_is_removed(engine):
    registry = MemoryPushRegistry()
    for endpoint in ("https://push.example/a", "https://push.example/b"):
        registry.save(
            PushSubscription(user_id="user-1", endpoint=endpoint, p256dh="key", auth="auth", created_at=engine.clock.now)
        )
    gateway = GoneForEndpoint("https://push.example/a")
    dispatcher, _ = _dispatcher(engine, push_gateway=gateway, push_registry=registry)
    entry = engine.ledger.enqueue("salon-1", "user-1", ["svc-haircut"])

    result = dispatcher.dispatch(_notify_request(entry.id, NotificationChannel.PUSH))

    assert result[NotificationChannel.PUSH] == DeliveryOutcome.SENT
    assert gateway.sent == ["https://push.example/b"]
    live = registry.live_for("user-1", engine.clock.now)
    assert [s.endpoint for s in live] == ["https://push.example/b"]
    assert live[0].last_used_at == engine.clock.now


def test_push_payload_carries_queue_link(engine):
    registry = MemoryPushRegistry()
    registry.save(PushSubscription(user_id="user-1", endpoint="https://push.example/a", p256dh="k", auth="a", created_at=engine.clock.now))
    gateway = MockPushGateway()
    dispatcher, _ = _dispatcher(engine, push_gateway=gateway, push_registry=registry)
    entry = engine.ledger.enqueue("salon-1", "user-1", ["svc-haircut"])

    dispatcher.dispatch(_notify_request(entry.id, NotificationChannel.PUSH))

    _, payload = gateway.sent[0]
    assert payload["title"] == "Your turn is coming up at Classic Cuts!"
    assert payload["data"]["queue_id"] == entry.id
    assert payload["data"]["url"] == f"/queue?id={entry.id}"
    assert payload["data"]["require_interaction"] is True


def test_expired_push_subscriptions_are_skipped(engine):
    registry = MemoryPushRegistry()
    registry.save(
        PushSubscription(
            user_id="user-1",
            endpoint="https://push.example/old",
            p256dh="k",
            auth="a",
            created_at=engine.clock.now - timedelta(days=30),
            expiration_time=engine.clock.now - timedelta(minutes=1),
        )
    )
    dispatcher, _ = _dispatcher(engine, push_registry=registry)
    entry = engine.ledger.enqueue("salon-1", "user-1", ["svc-haircut"])

    result = dispatcher.dispatch(_notify_request(entry.id, NotificationChannel.PUSH))

    assert result[NotificationChannel.PUSH] == DeliveryOutcome.SKIPPED
    assert registry.live_for("user-1", engine.clock.now) == []


def test_call_and_chat_links(engine):
    dispatcher, _ = _dispatcher(engine)
    entry = engine.ledger.enqueue("salon-1", "user-1", ["svc-haircut"])

    call = dispatcher.prepare_contact(entry.id, NotificationChannel.CALL)
    assert call.phone_number == "+15550000001"
    assert call.uri == "tel:+15550000001"

    chat = dispatcher.prepare_contact(entry.id, NotificationChannel.WHATSAPP, arrival_minutes=5)
    assert chat.uri.startswith("https://wa.me/15550000001?text=")
    assert unquote(chat.uri.split("text=", 1)[1]) == chat.message
    assert "in 5 minutes" in chat.message


def test_manual_channels_are_not_deduped(engine):
    dispatcher, _ = _dispatcher(engine)
    entry = engine.ledger.enqueue("salon-1", "user-1", ["svc-haircut"])

    dispatcher.prepare_contact(entry.id, NotificationChannel.CALL)
    dispatcher.prepare_contact(entry.id, NotificationChannel.CALL)

    record = dispatcher.records_for(entry.id)[0]
    assert record.outcome == DeliveryOutcome.PREPARED
    assert record.attempt_count == 2


def test_contact_errors(engine):
    dispatcher, _ = _dispatcher(engine)
    no_phone = engine.ledger.enqueue("salon-1", "user-4", ["svc-haircut"])
    closed = engine.ledger.enqueue("salon-1", "user-1", ["svc-haircut"])
    engine.transitions.cancel(closed.id)

    with pytest.raises(NotFound):
        dispatcher.prepare_contact("missing", NotificationChannel.CALL)
    with pytest.raises(InvalidRequest):
        dispatcher.prepare_contact(no_phone.id, NotificationChannel.CALL)
    with pytest.raises(InvalidTransition):
        dispatcher.prepare_contact(closed.id, NotificationChannel.WHATSAPP)
    with pytest.raises(InvalidRequest):
        dispatcher.prepare_contact(no_phone.id, NotificationChannel.SMS)


class BrokenRegistry(MemoryPushRegistry):
    def live_for(self, user_id, now):
        raise RuntimeError("registry offline")


def test_unexpected_channel_error_does_not_block_other_channels(engine):
    sms = MockSmsTransport()
    dispatcher, _ = _dispatcher(engine, sms=sms, push_registry=BrokenRegistry())
    entry = engine.ledger.enqueue("salon-1", "user-1", ["svc-haircut"])
    request = _notify_request(entry.id, NotificationChannel.PUSH, NotificationChannel.SMS, NotificationChannel.EMAIL)

    result = dispatcher.dispatch(request)

    assert result == {
        NotificationChannel.PUSH: DeliveryOutcome.FAILED,
        NotificationChannel.SMS: DeliveryOutcome.SENT,
        NotificationChannel.EMAIL: DeliveryOutcome.SENT,
    }
    records = {r.channel: r for r in dispatcher.records_for(entry.id)}
    assert records[NotificationChannel.PUSH].outcome == DeliveryOutcome.FAILED
    assert "registry offline" in records[NotificationChannel.PUSH].last_error
    assert all(r.outcome != DeliveryOutcome.PENDING for r in records.values())

    # a failed channel is not held back by the dedupe window
    again = dispatcher.dispatch(request)
    assert again == {NotificationChannel.PUSH: DeliveryOutcome.FAILED}


def test_naive_subscription_expiry_is_read_as_utc(engine):
    registry = MemoryPushRegistry()
    naive_now = engine.clock.now.replace(tzinfo=None)
    registry.save(
        PushSubscription(
            user_id="user-1",
            endpoint="https://push.example/live",
            p256dh="k",
            auth="a",
            created_at=engine.clock.now,
            expiration_time=naive_now + timedelta(days=1),
        )
    )
    registry.save(
        PushSubscription(
            user_id="user-1",
            endpoint="https://push.example/dead",
            p256dh="k",
            auth="a",
            created_at=engine.clock.now,
            expiration_time=naive_now - timedelta(minutes=1),
        )
    )
    gateway = MockPushGateway()
    dispatcher, _ = _dispatcher(engine, push_gateway=gateway, push_registry=registry)
    entry = engine.ledger.enqueue("salon-1", "user-1", ["svc-haircut"])

    result = dispatcher.dispatch(_notify_request(entry.id, NotificationChannel.PUSH, NotificationChannel.SMS))

    assert result[NotificationChannel.PUSH] == DeliveryOutcome.SENT
    assert result[NotificationChannel.SMS] == DeliveryOutcome.SENT
    assert [s.endpoint for s in registry.live_for("user-1", engine.clock.now)] == ["https://push.example/live"]
    assert registry.prune_expired(engine.clock.now + timedelta(days=2)) == 1
