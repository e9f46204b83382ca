from __future__ import annotations

import logging
from typing import Any

import httpx

from app.application.exceptions import PermanentDeliveryError, SubscriptionGone
from app.application.ports.transports import PushGatewayPort
from app.domain.entities.push_subscription import PushSubscription
from app.infrastructure.messaging.http_delivery import post_for_delivery


class PushRelayClient(PushGatewayPort):
    """
    Hands web-push payloads to a relay service that holds the VAPID keys.
    The relay answers 404/410 when the browser endpoint is gone.
    """

    def __init__(self, relay_url: str, api_key: str | None = None, client: httpx.Client | None = None) -> None:
        self._relay_url = relay_url
        self._api_key = api_key
        self._client = client or httpx.Client(timeout=10.0)
        self._logger = logging.getLogger(__name__)

    def send_push(self, subscription: PushSubscription, payload: dict[str, Any]) -> None:
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        body = {
            "subscription": {
                "endpoint": subscription.endpoint,
                "keys": {"p256dh": subscription.p256dh, "auth": subscription.auth},
            },
            "payload": payload,
        }
        try:
            post_for_delivery(self._client, self._relay_url, "push-relay", headers=headers, json=body)
        except PermanentDeliveryError as e:
            if e.status_code in (404, 410):
                raise SubscriptionGone(f"Push endpoint gone for user {subscription.user_id}") from e
            raise
        self._logger.info("Push sent", extra={"channel": "push", "user_id": subscription.user_id})
