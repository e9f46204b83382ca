from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from app.domain.entities.push_subscription import PushSubscription


class SmsTransportPort(ABC):
    @abstractmethod
    def send_sms(self, to_phone: str, body: str) -> None:
        """Raises TransientDeliveryError or PermanentDeliveryError on failure."""
        raise NotImplementedError


class EmailTransportPort(ABC):
    @abstractmethod
    def send_email(self, to_email: str, subject: str, body: str) -> None:
        """Raises TransientDeliveryError or PermanentDeliveryError on failure."""
        raise NotImplementedError


class PushGatewayPort(ABC):
    @abstractmethod
    def send_push(self, subscription: PushSubscription, payload: dict[str, Any]) -> None:
        """Raises SubscriptionGone when the endpoint no longer exists."""
        raise NotImplementedError
