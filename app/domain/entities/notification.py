from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class NotificationChannel(str, Enum):
    PUSH = "push"
    SMS = "sms"
    EMAIL = "email"
    CALL = "call"
    WHATSAPP = "whatsapp"

    @property
    def is_manual(self) -> bool:
        return self in (NotificationChannel.CALL, NotificationChannel.WHATSAPP)


class NotificationEvent(str, Enum):
    NOTIFY = "notify"
    REMINDER = "reminder"


class DeliveryOutcome(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"
    PREPARED = "prepared"  # manual channels: payload handed back to staff


@dataclass(frozen=True)
class NotificationRecord:
    queue_entry_id: str
    channel: NotificationChannel
    attempt_count: int
    last_attempt_at: datetime
    outcome: DeliveryOutcome
    event: NotificationEvent | None = None
    last_error: str | None = None


@dataclass(frozen=True)
class DeliveryReport:
    outcome: DeliveryOutcome
    attempts: int
    error: str | None = None


@dataclass(frozen=True)
class DispatchRequest:
    entry_id: str
    event: NotificationEvent
    arrival_minutes: int | None = None
    channels: tuple[NotificationChannel, ...] = ()


@dataclass(frozen=True)
class ComposedMessage:
    channel: NotificationChannel
    body: str
    subject: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ContactLink:
    channel: NotificationChannel
    phone_number: str
    uri: str
    customer_name: str
    message: str | None = None
