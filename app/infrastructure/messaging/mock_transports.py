from __future__ import annotations

import logging
from typing import Any

from app.application.ports.transports import EmailTransportPort, PushGatewayPort, SmsTransportPort
from app.domain.entities.push_subscription import PushSubscription


class MockSmsTransport(SmsTransportPort):
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self._logger = logging.getLogger(__name__)

    def send_sms(self, to_phone: str, body: str) -> None:
        self.sent.append((to_phone, body))
        self._logger.info("Mock SMS", extra={"channel": "sms", "to": to_phone, "text": body})


class MockEmailTransport(EmailTransportPort):
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self._logger = logging.getLogger(__name__)

    def send_email(self, to_email: str, subject: str, body: str) -> None:
        self.sent.append((to_email, subject, body))
        self._logger.info("Mock email", extra={"channel": "email", "to": to_email, "subject": subject})


class MockPushGateway(PushGatewayPort):
    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self._logger = logging.getLogger(__name__)

    def send_push(self, subscription: PushSubscription, payload: dict[str, Any]) -> None:
        self.sent.append((subscription.endpoint, payload))
        self._logger.info("Mock push", extra={"channel": "push", "user_id": subscription.user_id})
