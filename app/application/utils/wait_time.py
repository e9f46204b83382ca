from __future__ import annotations

from dataclasses import replace

from app.domain.entities.directory import SalonService
from app.domain.entities.queue_entry import QueueEntry


def entry_duration_minutes(
    entry: QueueEntry,
    services: dict[str, SalonService],
    default_minutes: int,
) -> int:
    """Sum of average durations of the entry's services."""
    total = 0
    for service_id in entry.service_ids:
        service = services.get(service_id)
        if service is None or service.duration_minutes <= 0:
            total += default_minutes
        else:
            total += service.duration_minutes
    return total


def order_active(entries: list[QueueEntry]) -> list[QueueEntry]:
    """
    FIFO order: joined_at ascending. Equal timestamps keep their previous
    relative position so arrival order never flips.
    """
    return sorted(entries, key=lambda e: (e.joined_at, e.position))


def rank_entries(
    entries: list[QueueEntry],
    services: dict[str, SalonService],
    default_minutes: int,
) -> list[QueueEntry]:
    """
    Assign positions 1..N and cumulative wait estimates to active entries.
    Returns the full ranked list (changed and unchanged entries alike).
    """
    ranked: list[QueueEntry] = []
    minutes_ahead = 0
    for index, entry in enumerate(order_active(entries), start=1):
        if entry.position != index or entry.estimated_wait_minutes != minutes_ahead:
            entry = replace(entry, position=index, estimated_wait_minutes=minutes_ahead)
        ranked.append(entry)
        minutes_ahead += entry_duration_minutes(entry, services, default_minutes)
    return ranked
