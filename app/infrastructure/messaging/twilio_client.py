from __future__ import annotations

import logging

import httpx

from app.application.ports.transports import SmsTransportPort
from app.infrastructure.messaging.http_delivery import post_for_delivery, response_field


class TwilioSmsClient(SmsTransportPort):
    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        base_url: str = "https://api.twilio.com/2010-04-01",
        client: httpx.Client | None = None,
    ) -> None:
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._url = f"{base_url.rstrip('/')}/Accounts/{account_sid}/Messages.json"
        self._client = client or httpx.Client(timeout=10.0)
        self._logger = logging.getLogger(__name__)

    def send_sms(self, to_phone: str, body: str) -> None:
        resp = post_for_delivery(
            self._client,
            self._url,
            "twilio",
            auth=(self._account_sid, self._auth_token),
            data={"To": to_phone, "From": self._from_number, "Body": body},
        )
        self._logger.info("SMS sent", extra={"channel": "sms", "sid": response_field(resp, "sid")})
