from __future__ import annotations

import logging

import httpx

from app.application.ports.transports import EmailTransportPort
from app.infrastructure.messaging.http_delivery import post_for_delivery, response_field


class ResendEmailClient(EmailTransportPort):
    def __init__(
        self,
        api_key: str,
        from_email: str,
        base_url: str = "https://api.resend.com",
        client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key
        self._from_email = from_email
        self._url = f"{base_url.rstrip('/')}/emails"
        self._client = client or httpx.Client(timeout=10.0)
        self._logger = logging.getLogger(__name__)

    def send_email(self, to_email: str, subject: str, body: str) -> None:
        resp = post_for_delivery(
            self._client,
            self._url,
            "resend",
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={"from": self._from_email, "to": [to_email], "subject": subject, "text": body},
        )
        self._logger.info("Email sent", extra={"channel": "email", "email_id": response_field(resp, "id")})
