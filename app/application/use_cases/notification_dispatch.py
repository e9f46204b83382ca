from __future__ import annotations

import logging
import time
from typing import Callable

from app.application.exceptions import (
    DeliveryError,
    InvalidRequest,
    InvalidTransition,
    NotFound,
    SubscriptionGone,
    TransientDeliveryError,
)
from app.application.ports.directory import DirectoryPort
from app.application.ports.notification_log import NotificationLogPort
from app.application.ports.push_registry import PushRegistryPort
from app.application.ports.queue_store import QueueStorePort
from app.application.ports.transports import EmailTransportPort, PushGatewayPort, SmsTransportPort
from app.application.utils.clock import Clock, utc_now
from app.application.utils.contact_links import normalize_phone, tel_uri, whatsapp_link
from app.application.utils.message_templates import MessageContext, compose_otp_message, compose_queue_message
from app.application.utils.retry import RetryError, RetryPolicy, retry_with_backoff
from app.domain.entities.notification import (
    ComposedMessage,
    ContactLink,
    DeliveryOutcome,
    DeliveryReport,
    DispatchRequest,
    NotificationChannel,
    NotificationEvent,
    NotificationRecord,
)
from app.domain.entities.directory import Customer
from app.domain.entities.otp_challenge import OTPChannel
from app.domain.entities.queue_entry import QueueEntry


class NotificationDispatchUseCase:
    """
    Decides what to send on which channel and records how it went.

    Delivery errors stop here: they are logged, written to the notification
    log and never raised to whoever changed the queue.
    """

    def __init__(
        self,
        store: QueueStorePort,
        directory: DirectoryPort,
        log: NotificationLogPort,
        push_registry: PushRegistryPort,
        sms: SmsTransportPort,
        email: EmailTransportPort,
        push_gateway: PushGatewayPort,
        retry_policy: RetryPolicy | None = None,
        dedupe_seconds: float = 60.0,
        clock: Clock = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._directory = directory
        self._log = log
        self._push_registry = push_registry
        self._sms = sms
        self._email = email
        self._push_gateway = push_gateway
        self._retry_policy = retry_policy or RetryPolicy()
        self._dedupe_seconds = dedupe_seconds
        self._clock = clock
        self._sleep = sleep
        self._logger = logging.getLogger(__name__)

    # -------------------- automated channels --------------------

    def dispatch(self, request: DispatchRequest) -> dict[NotificationChannel, DeliveryOutcome]:
        """Deliver one notify/reminder request. Suppressed duplicates are left out of the result."""
        entry = self._store.get(request.entry_id)
        if entry is None:
            self._logger.warning("Dispatch for unknown queue entry", extra={"entry_id": request.entry_id})
            return {}

        ctx = self._context(entry, request.arrival_minutes)
        customer = self._directory.get_customer(entry.user_id)
        results: dict[NotificationChannel, DeliveryOutcome] = {}

        for channel in request.channels:
            if channel.is_manual:
                self._logger.info("Manual channel ignored by dispatcher", extra={"entry_id": entry.id, "channel": channel.value})
                continue

            record = self._log.claim(entry.id, channel, request.event, self._clock(), self._dedupe_seconds)
            if record is None:
                self._logger.info(
                    "Duplicate notification suppressed",
                    extra={"entry_id": entry.id, "channel": channel.value, "reason": request.event.value},
                )
                continue

            if not entry.is_active:
                outcome = self._finish(entry.id, channel, request.event, DeliveryOutcome.SKIPPED, 0, "entry no longer active")
                results[channel] = outcome
                continue

            try:
                outcome, attempts, error = self._deliver(channel, request.event, entry, customer, ctx)
            except Exception as e:
                # a claimed record must never stay pending
                self._logger.exception(
                    "Unexpected error while delivering notification",
                    extra={"entry_id": entry.id, "channel": channel.value, "error": str(e)},
                )
                outcome, attempts, error = DeliveryOutcome.FAILED, 0, str(e) or type(e).__name__

            results[channel] = self._finish(entry.id, channel, request.event, outcome, attempts, error)

        return results

    def send_otp(self, channel: OTPChannel, address: str, code: str, ttl_minutes: int, name: str | None = None) -> DeliveryReport:
        """Synchronous OTP delivery through the same email/SMS path, retried on transient failures."""
        if channel == OTPChannel.EMAIL:
            message = compose_otp_message(NotificationChannel.EMAIL, code, ttl_minutes, name)
            send = lambda: self._email.send_email(address, message.subject or "", message.body)
            notification_channel = NotificationChannel.EMAIL
        else:
            message = compose_otp_message(NotificationChannel.SMS, code, ttl_minutes, name)
            phone = normalize_phone(address)
            send = lambda: self._sms.send_sms(phone, message.body)
            notification_channel = NotificationChannel.SMS

        outcome, attempts, error = self._deliver_with_retry(send, notification_channel, None)
        return DeliveryReport(outcome=outcome, attempts=attempts, error=error)

    # -------------------- manual channels --------------------

    def prepare_contact(
        self,
        entry_id: str,
        channel: NotificationChannel,
        arrival_minutes: int | None = None,
    ) -> ContactLink:
        """Resolve what staff need to call or message the customer themselves."""
        if not channel.is_manual:
            raise InvalidRequest(f"{channel.value} is not a manual channel")

        entry = self._store.get(entry_id)
        if entry is None:
            raise NotFound(f"Queue entry {entry_id} not found")
        if not entry.is_active:
            raise InvalidTransition(f"Queue entry {entry_id} is already {entry.status.value}")

        customer = self._directory.get_customer(entry.user_id)
        phone = normalize_phone(customer.phone) if customer and customer.phone else ""
        if not phone:
            raise InvalidRequest("Customer phone number not available")

        if channel == NotificationChannel.CALL:
            link = ContactLink(channel=channel, phone_number=phone, uri=tel_uri(phone), customer_name=customer.name)
        else:
            ctx = self._context(entry, arrival_minutes if arrival_minutes is not None else entry.arrival_minutes)
            text = compose_queue_message(NotificationEvent.NOTIFY, channel, ctx).body
            link = ContactLink(
                channel=channel,
                phone_number=phone,
                uri=whatsapp_link(phone, text),
                customer_name=customer.name,
                message=text,
            )

        self._log.record(entry.id, channel, DeliveryOutcome.PREPARED, self._clock(), attempts=1)
        self._logger.info("Contact details prepared", extra={"entry_id": entry.id, "channel": channel.value})
        return link

    def records_for(self, entry_id: str) -> list[NotificationRecord]:
        if self._store.get(entry_id) is None:
            raise NotFound(f"Queue entry {entry_id} not found")
        return self._log.list_for_entry(entry_id)

    # -------------------- internals --------------------

    def _context(self, entry: QueueEntry, arrival_minutes: int | None) -> MessageContext:
        customer = self._directory.get_customer(entry.user_id)
        salon = self._directory.get_salon(entry.salon_id)
        services = self._directory.get_services(entry.salon_id, entry.service_ids)
        return MessageContext(
            entry_id=entry.id,
            customer_name=customer.name if customer else "",
            salon_name=salon.name if salon else "the salon",
            salon_address=salon.address if salon else None,
            service_names=tuple(services[s].name for s in entry.service_ids if s in services),
            arrival_minutes=arrival_minutes,
            position=entry.position,
        )

    def _deliver(
        self,
        channel: NotificationChannel,
        event: NotificationEvent,
        entry: QueueEntry,
        customer: Customer | None,
        ctx: MessageContext,
    ) -> tuple[DeliveryOutcome, int, str | None]:
        message = compose_queue_message(event, channel, ctx)
        if channel == NotificationChannel.PUSH:
            return self._deliver_push(entry.user_id, message)
        if channel == NotificationChannel.SMS:
            phone = normalize_phone(customer.phone) if customer and customer.phone else ""
            if not phone:
                return DeliveryOutcome.SKIPPED, 0, "no phone number"
            return self._deliver_with_retry(lambda: self._sms.send_sms(phone, message.body), channel, entry.id)
        if channel == NotificationChannel.EMAIL:
            address = customer.email if customer else None
            if not address:
                return DeliveryOutcome.SKIPPED, 0, "no email address"
            return self._deliver_with_retry(
                lambda: self._email.send_email(address, message.subject or "", message.body), channel, entry.id
            )
        return DeliveryOutcome.SKIPPED, 0, "unsupported channel"

    def _deliver_with_retry(
        self,
        send: Callable[[], None],
        channel: NotificationChannel,
        entry_id: str | None,
    ) -> tuple[DeliveryOutcome, int, str | None]:
        try:
            _, attempts = retry_with_backoff(
                send,
                self._retry_policy,
                should_retry=lambda e: isinstance(e, TransientDeliveryError),
                sleep=self._sleep,
            )
            return DeliveryOutcome.SENT, attempts, None
        except RetryError as e:
            if not isinstance(e.last_error, DeliveryError):
                self._logger.exception(
                    "Unexpected transport error", extra={"entry_id": entry_id, "channel": channel.value}
                )
            self._logger.warning(
                "Notification delivery failed",
                extra={"entry_id": entry_id, "channel": channel.value, "attempts": e.attempts, "error": str(e.last_error)},
            )
            return DeliveryOutcome.FAILED, e.attempts, str(e.last_error)

    def _deliver_push(self, user_id: str, message: ComposedMessage) -> tuple[DeliveryOutcome, int, str | None]:
        now = self._clock()
        subscriptions = self._push_registry.live_for(user_id, now)
        if not subscriptions:
            return DeliveryOutcome.SKIPPED, 0, "no push subscription"

        payload = {"title": message.subject, "body": message.body, "data": dict(message.data)}
        sent = 0
        last_error: str | None = None
        for subscription in subscriptions:
            try:
                self._push_gateway.send_push(subscription, payload)
                self._push_registry.touch(user_id, subscription.endpoint, now)
                sent += 1
            except SubscriptionGone as e:
                self._push_registry.remove(user_id, subscription.endpoint)
                last_error = str(e)
                self._logger.info("Removed gone push subscription", extra={"user_id": user_id, "error": str(e)})
            except DeliveryError as e:
                last_error = str(e)
                self._logger.warning("Push delivery failed", extra={"user_id": user_id, "error": str(e)})
            except Exception as e:
                last_error = str(e) or type(e).__name__
                self._logger.exception("Unexpected push gateway error", extra={"user_id": user_id, "error": str(e)})

        if sent:
            return DeliveryOutcome.SENT, len(subscriptions), None
        return DeliveryOutcome.FAILED, len(subscriptions), last_error

    def _finish(
        self,
        entry_id: str,
        channel: NotificationChannel,
        event: NotificationEvent,
        outcome: DeliveryOutcome,
        attempts: int,
        error: str | None,
    ) -> DeliveryOutcome:
        self._log.record(entry_id, channel, outcome, self._clock(), event=event, attempts=attempts, error=error)
        self._logger.info(
            "Notification outcome",
            extra={"entry_id": entry_id, "channel": channel.value, "outcome": outcome.value, "attempts": attempts},
        )
        return outcome
