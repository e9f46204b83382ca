from __future__ import annotations

from enum import Enum


class QueueStatus(str, Enum):
    WAITING = "waiting"
    NOTIFIED = "notified"
    PENDING_VERIFICATION = "pending_verification"
    NEARBY = "nearby"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    NO_SHOW = "no-show"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({QueueStatus.COMPLETED, QueueStatus.NO_SHOW, QueueStatus.CANCELLED})

ACTIVE_STATUSES = frozenset(s for s in QueueStatus if s not in TERMINAL_STATUSES)

# Single source of truth for lifecycle edges.
TRANSITIONS: dict[QueueStatus, frozenset[QueueStatus]] = {
    QueueStatus.WAITING: frozenset({QueueStatus.NOTIFIED, QueueStatus.CANCELLED}),
    QueueStatus.NOTIFIED: frozenset(
        {
            QueueStatus.PENDING_VERIFICATION,
            QueueStatus.NEARBY,
            QueueStatus.NO_SHOW,
            QueueStatus.CANCELLED,
        }
    ),
    QueueStatus.PENDING_VERIFICATION: frozenset(
        {QueueStatus.NEARBY, QueueStatus.NO_SHOW, QueueStatus.CANCELLED}
    ),
    QueueStatus.NEARBY: frozenset(
        {QueueStatus.IN_PROGRESS, QueueStatus.NO_SHOW, QueueStatus.CANCELLED}
    ),
    QueueStatus.IN_PROGRESS: frozenset({QueueStatus.COMPLETED, QueueStatus.NO_SHOW}),
    QueueStatus.COMPLETED: frozenset(),
    QueueStatus.NO_SHOW: frozenset(),
    QueueStatus.CANCELLED: frozenset(),
}


def can_transition(source: QueueStatus, target: QueueStatus) -> bool:
    return target in TRANSITIONS.get(source, frozenset())
