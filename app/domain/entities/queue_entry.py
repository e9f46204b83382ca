from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.domain.entities.queue_status import QueueStatus


@dataclass(frozen=True)
class QueueEntry:
    id: str
    salon_id: str
    user_id: str
    service_ids: tuple[str, ...]
    joined_at: datetime
    status: QueueStatus = QueueStatus.WAITING
    position: int = 1
    estimated_wait_minutes: int = 0
    notified_at: datetime | None = None
    arrival_minutes: int | None = None  # customer's ETA given at notify time
    check_in_at: datetime | None = None
    check_in_distance_m: float | None = None
    verified_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    ended_at: datetime | None = None  # set on any terminal status
    terminated_reason: str | None = None

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal
