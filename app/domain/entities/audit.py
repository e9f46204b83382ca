from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from app.domain.entities.queue_status import QueueStatus


class Actor(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    SYSTEM = "system"


@dataclass(frozen=True)
class StatusTransitionRecord:
    entry_id: str
    salon_id: str
    user_id: str
    old_status: QueueStatus
    new_status: QueueStatus
    actor: Actor
    at: datetime
    reason: str | None = None
