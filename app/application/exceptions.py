from __future__ import annotations


class QueueEngineError(Exception):
    """Base class for every error the queue engine raises on purpose."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class ValidationError(QueueEngineError):
    """Raised for malformed input, before any mutation happens."""
    pass


class InvalidRequest(ValidationError):
    pass


class NotFound(QueueEngineError):
    pass


class ConflictError(QueueEngineError):
    pass


class AlreadyQueued(ConflictError):
    """Raised when the user already holds a non-terminal entry at the salon."""
    pass


class InvalidTransition(QueueEngineError):
    """Raised for a status change outside the lifecycle graph. The entry is left untouched."""
    pass


class VerificationError(QueueEngineError):
    pass


class ChallengeNotFound(VerificationError):
    pass


class Expired(VerificationError):
    pass


class NoAttemptsLeft(VerificationError):
    pass


class Mismatch(VerificationError):
    def __init__(self, message: str = "", attempts_remaining: int = 0) -> None:
        super().__init__(message)
        self.attempts_remaining = attempts_remaining


class RateLimited(QueueEngineError):
    def __init__(self, message: str = "", retry_after: int = 0) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class DeliveryError(QueueEngineError):
    """Raised by transport adapters. Never escapes the dispatcher."""
    pass


class TransientDeliveryError(DeliveryError):
    """Timeouts, connection errors and 5xx responses: worth retrying."""
    pass


class PermanentDeliveryError(DeliveryError):
    def __init__(self, message: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SubscriptionGone(PermanentDeliveryError):
    """Push endpoint answered 404/410; the subscription should be dropped."""
    pass
