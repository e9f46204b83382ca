from __future__ import annotations

import logging
from typing import Any

import httpx

from app.application.exceptions import PermanentDeliveryError, TransientDeliveryError

logger = logging.getLogger(__name__)


def post_for_delivery(client: httpx.Client, url: str, provider: str, **kwargs: Any) -> httpx.Response:
    """
    POST and translate failures into delivery errors.
    Timeouts, connection errors and 5xx are transient; other 4xx are permanent.
    """
    try:
        resp = client.post(url, **kwargs)
    except (httpx.TimeoutException, httpx.TransportError) as e:
        raise TransientDeliveryError(f"{provider} unreachable: {e}") from e

    if resp.status_code >= 500 or resp.status_code == 429:
        raise TransientDeliveryError(f"{provider} returned {resp.status_code}")
    if resp.status_code >= 400:
        detail = response_field(resp, "message") or resp.text
        logger.error(
            "Delivery rejected",
            extra={"provider": provider, "status": resp.status_code, "error": detail},
        )
        raise PermanentDeliveryError(f"{provider} returned {resp.status_code}: {detail}", status_code=resp.status_code)
    return resp


def response_field(resp: httpx.Response, key: str) -> Any:
    """Read one field of a JSON object body; None when the body is not one."""
    try:
        body = resp.json()
    except ValueError:
        return None
    return body.get(key) if isinstance(body, dict) else None
