from __future__ import annotations

from fastapi import HTTPException

from app.application.exceptions import (
    ConflictError,
    DeliveryError,
    InvalidTransition,
    Mismatch,
    NotFound,
    QueueEngineError,
    RateLimited,
    ValidationError,
    VerificationError,
)

_STATUS_CODES: list[tuple[type[QueueEngineError], int]] = [
    (ValidationError, 400),
    (NotFound, 404),
    (ConflictError, 409),
    (InvalidTransition, 409),
    (VerificationError, 400),
    (RateLimited, 429),
    (DeliveryError, 502),
]


def http_error(e: QueueEngineError) -> HTTPException:
    status_code = next((code for cls, code in _STATUS_CODES if isinstance(e, cls)), 500)
    detail: dict[str, object] = {"code": type(e).__name__, "message": e.message}
    headers = None
    if isinstance(e, Mismatch):
        detail["attempts_remaining"] = e.attempts_remaining
    if isinstance(e, RateLimited):
        headers = {"Retry-After": str(e.retry_after)}
    return HTTPException(status_code=status_code, detail=detail, headers=headers)
