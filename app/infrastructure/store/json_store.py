from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from app.application.ports.audit_log import AuditLogPort
from app.application.ports.loyalty_store import LoyaltyStorePort
from app.application.ports.queue_store import QueueStorePort
from app.application.ports.reputation_store import ReputationStorePort
from app.domain.entities.audit import Actor, StatusTransitionRecord
from app.domain.entities.queue_entry import QueueEntry
from app.domain.entities.queue_status import QueueStatus
from app.domain.entities.reputation import Reputation

logger = logging.getLogger(__name__)


def _write_atomic(file_path: Path, data: dict[str, Any]) -> None:
    """Write JSON to a temp file next to the target and rename it over the target."""
    temp_path = file_path.with_suffix(".json.tmp")
    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        temp_path.replace(file_path)
    except Exception:
        if temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass
        raise


def _read(file_path: Path, default: dict[str, Any]) -> dict[str, Any]:
    if not file_path.exists():
        return default
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.error("Unreadable store file, starting empty", extra={"error": str(e), "path": str(file_path)})
        return default


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_entry(entry: QueueEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "salon_id": entry.salon_id,
        "user_id": entry.user_id,
        "service_ids": list(entry.service_ids),
        "joined_at": _iso(entry.joined_at),
        "status": entry.status.value,
        "position": entry.position,
        "estimated_wait_minutes": entry.estimated_wait_minutes,
        "notified_at": _iso(entry.notified_at),
        "arrival_minutes": entry.arrival_minutes,
        "check_in_at": _iso(entry.check_in_at),
        "check_in_distance_m": entry.check_in_distance_m,
        "verified_at": _iso(entry.verified_at),
        "started_at": _iso(entry.started_at),
        "completed_at": _iso(entry.completed_at),
        "ended_at": _iso(entry.ended_at),
        "terminated_reason": entry.terminated_reason,
    }


def deserialize_entry(data: dict[str, Any]) -> QueueEntry:
    return QueueEntry(
        id=data["id"],
        salon_id=data["salon_id"],
        user_id=data["user_id"],
        service_ids=tuple(data.get("service_ids", [])),
        joined_at=_dt(data["joined_at"]),
        status=QueueStatus(data.get("status", QueueStatus.WAITING.value)),
        position=data.get("position", 1),
        estimated_wait_minutes=data.get("estimated_wait_minutes", 0),
        notified_at=_dt(data.get("notified_at")),
        arrival_minutes=data.get("arrival_minutes"),
        check_in_at=_dt(data.get("check_in_at")),
        check_in_distance_m=data.get("check_in_distance_m"),
        verified_at=_dt(data.get("verified_at")),
        started_at=_dt(data.get("started_at")),
        completed_at=_dt(data.get("completed_at")),
        ended_at=_dt(data.get("ended_at")),
        terminated_reason=data.get("terminated_reason"),
    )


class JsonQueueStore(QueueStorePort):
    """
    Queue entries in a single entries.json file.
    The whole file is rewritten on every save so one save_many is one atomic write.
    """

    def __init__(self, data_dir: str = "./data") -> None:
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._file_path = self._data_dir / "entries.json"
        self._lock = threading.Lock()
        raw = _read(self._file_path, {"entries": [], "version": 1})
        self._entries: dict[str, QueueEntry] = {}
        for item in raw.get("entries", []):
            entry = deserialize_entry(item)
            self._entries[entry.id] = entry

    def _flush(self) -> None:
        _write_atomic(
            self._file_path,
            {"entries": [serialize_entry(e) for e in self._entries.values()], "version": 1},
        )

    def get(self, entry_id: str) -> QueueEntry | None:
        with self._lock:
            return self._entries.get(entry_id)

    def save(self, entry: QueueEntry) -> None:
        self.save_many([entry])

    def save_many(self, entries: list[QueueEntry]) -> None:
        with self._lock:
            previous = dict(self._entries)
            for entry in entries:
                self._entries[entry.id] = entry
            try:
                self._flush()
            except Exception:
                self._entries = previous
                raise

    def list_active(self, salon_id: str) -> list[QueueEntry]:
        with self._lock:
            return [e for e in self._entries.values() if e.salon_id == salon_id and e.is_active]

    def find_active_for_user(self, salon_id: str, user_id: str) -> QueueEntry | None:
        with self._lock:
            for entry in self._entries.values():
                if entry.salon_id == salon_id and entry.user_id == user_id and entry.is_active:
                    return entry
        return None

    def list_for_user(self, user_id: str) -> list[QueueEntry]:
        with self._lock:
            return [e for e in self._entries.values() if e.user_id == user_id]

    def list_by_status(self, status: QueueStatus) -> list[QueueEntry]:
        with self._lock:
            return [e for e in self._entries.values() if e.status == status]


class JsonLoyaltyStore(LoyaltyStorePort):
    def __init__(self, data_dir: str = "./data") -> None:
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._file_path = self._data_dir / "loyalty.json"
        self._lock = threading.Lock()

    @staticmethod
    def _key(user_id: str, salon_id: str) -> str:
        return f"{user_id}:{salon_id}"

    def _load(self) -> dict[str, Any]:
        data = _read(self._file_path, {"points": {}, "awarded": [], "version": 1})
        data.setdefault("points", {})
        data.setdefault("awarded", [])
        return data

    def get_points(self, user_id: str, salon_id: str) -> int:
        with self._lock:
            return int(self._load()["points"].get(self._key(user_id, salon_id), 0))

    def add_points(self, user_id: str, salon_id: str, points: int, award_key: str) -> tuple[int, bool]:
        key = self._key(user_id, salon_id)
        with self._lock:
            data = self._load()
            current = int(data["points"].get(key, 0))
            if award_key in data["awarded"]:
                return current, False
            data["points"][key] = current + points
            data["awarded"].append(award_key)
            _write_atomic(self._file_path, data)
            return current + points, True


def serialize_reputation(reputation: Reputation) -> dict[str, Any]:
    return {
        "user_id": reputation.user_id,
        "score": reputation.score,
        "total_check_ins": reputation.total_check_ins,
        "successful_check_ins": reputation.successful_check_ins,
        "false_check_ins": reputation.false_check_ins,
        "no_shows": reputation.no_shows,
        "completed_services": reputation.completed_services,
        "last_check_in_at": _iso(reputation.last_check_in_at),
        "last_no_show_at": _iso(reputation.last_no_show_at),
        "updated_at": _iso(reputation.updated_at),
    }


def deserialize_reputation(data: dict[str, Any]) -> Reputation:
    return Reputation(
        user_id=data["user_id"],
        score=int(data.get("score", 50)),
        total_check_ins=data.get("total_check_ins", 0),
        successful_check_ins=data.get("successful_check_ins", 0),
        false_check_ins=data.get("false_check_ins", 0),
        no_shows=data.get("no_shows", 0),
        completed_services=data.get("completed_services", 0),
        last_check_in_at=_dt(data.get("last_check_in_at")),
        last_no_show_at=_dt(data.get("last_no_show_at")),
        updated_at=_dt(data.get("updated_at")),
    )


class JsonReputationStore(ReputationStorePort):
    def __init__(self, data_dir: str = "./data") -> None:
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._file_path = self._data_dir / "reputation.json"
        self._lock = threading.Lock()

    def _load(self) -> dict[str, Any]:
        data = _read(self._file_path, {"users": {}, "version": 1})
        data.setdefault("users", {})
        return data

    def get(self, user_id: str) -> Reputation | None:
        with self._lock:
            raw = self._load()["users"].get(user_id)
        return deserialize_reputation(raw) if raw else None

    def update(self, user_id: str, fn: Callable[[Reputation], Reputation]) -> Reputation:
        with self._lock:
            data = self._load()
            raw = data["users"].get(user_id)
            current = deserialize_reputation(raw) if raw else Reputation(user_id=user_id)
            updated = fn(current)
            data["users"][user_id] = serialize_reputation(updated)
            _write_atomic(self._file_path, data)
            return updated


class JsonAuditLog(AuditLogPort):
    """Status transitions in transitions.json, one list for all entries."""

    def __init__(self, data_dir: str = "./data") -> None:
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._file_path = self._data_dir / "transitions.json"
        self._lock = threading.Lock()

    def _load(self) -> dict[str, Any]:
        data = _read(self._file_path, {"transitions": [], "version": 1})
        data.setdefault("transitions", [])
        return data

    def append(self, record: StatusTransitionRecord) -> None:
        with self._lock:
            data = self._load()
            data["transitions"].append(
                {
                    "entry_id": record.entry_id,
                    "salon_id": record.salon_id,
                    "user_id": record.user_id,
                    "old_status": record.old_status.value,
                    "new_status": record.new_status.value,
                    "actor": record.actor.value,
                    "at": _iso(record.at),
                    "reason": record.reason,
                }
            )
            _write_atomic(self._file_path, data)

    def list_for_entry(self, entry_id: str) -> list[StatusTransitionRecord]:
        with self._lock:
            items = [t for t in self._load()["transitions"] if t.get("entry_id") == entry_id]
        return [
            StatusTransitionRecord(
                entry_id=t["entry_id"],
                salon_id=t["salon_id"],
                user_id=t["user_id"],
                old_status=QueueStatus(t["old_status"]),
                new_status=QueueStatus(t["new_status"]),
                actor=Actor(t.get("actor", Actor.SYSTEM.value)),
                at=_dt(t["at"]),
                reason=t.get("reason"),
            )
            for t in items
        ]
