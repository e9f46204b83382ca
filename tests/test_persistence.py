"""
Tests for durable queue, loyalty, reputation and audit persistence.
"""

from __future__ import annotations

import json
import tempfile
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

from app.domain.entities.audit import Actor, StatusTransitionRecord
from app.domain.entities.queue_entry import QueueEntry
from app.domain.entities.queue_status import QueueStatus
from app.domain.entities.reputation import ReputationAction, TrustLevel
from app.infrastructure.store.json_store import JsonAuditLog, JsonLoyaltyStore, JsonQueueStore, JsonReputationStore


def _entry(entry_id: str, user_id: str, position: int) -> QueueEntry:
    return QueueEntry(
        id=entry_id,
        salon_id="salon-1",
        user_id=user_id,
        service_ids=("svc-haircut", "svc-beard"),
        joined_at=datetime(2026, 3, 2, 9, position, tzinfo=timezone.utc),
        position=position,
        estimated_wait_minutes=(position - 1) * 45,
    )


def test_json_queue_store_survives_restart():
    """Entries written by one store instance are read back by a new one."""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonQueueStore(data_dir=tmpdir)
        first = _entry("e1", "user-1", 1)
        second = _entry("e2", "user-2", 2)
        store.save_many([first, second])
        notified = replace(second, status=QueueStatus.NOTIFIED, notified_at=datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc))
        store.save(notified)

        reopened = JsonQueueStore(data_dir=tmpdir)
        assert reopened.get("e1") == first
        assert reopened.get("e2") == notified
        assert reopened.find_active_for_user("salon-1", "user-2") == notified
        assert [e.id for e in reopened.list_by_status(QueueStatus.NOTIFIED)] == ["e2"]


def test_json_queue_store_writes_single_file_without_temp_leftovers():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonQueueStore(data_dir=tmpdir)
        store.save(_entry("e1", "user-1", 1))

        files = sorted(p.name for p in Path(tmpdir).iterdir())
        assert files == ["entries.json"]
        data = json.loads((Path(tmpdir) / "entries.json").read_text(encoding="utf-8"))
        assert data["entries"][0]["status"] == "waiting"
        assert data["entries"][0]["service_ids"] == ["svc-haircut", "svc-beard"]


def test_terminal_entries_drop_out_of_active_lists():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonQueueStore(data_dir=tmpdir)
        entry = _entry("e1", "user-1", 1)
        store.save(entry)
        store.save(replace(entry, status=QueueStatus.CANCELLED, terminated_reason="Changed plans"))

        reopened = JsonQueueStore(data_dir=tmpdir)
        assert reopened.list_active("salon-1") == []
        assert reopened.get("e1").terminated_reason == "Changed plans"
        assert [e.id for e in reopened.list_for_user("user-1")] == ["e1"]


def test_corrupted_queue_file_starts_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / "entries.json").write_text("{not json", encoding="utf-8")

        store = JsonQueueStore(data_dir=tmpdir)
        assert store.list_active("salon-1") == []


def test_json_loyalty_store_is_idempotent_across_restarts():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonLoyaltyStore(data_dir=tmpdir)
        assert store.add_points("user-1", "salon-1", 25, award_key="e1") == (25, True)
        assert store.add_points("user-1", "salon-1", 25, award_key="e2") == (50, True)

        reopened = JsonLoyaltyStore(data_dir=tmpdir)
        assert reopened.add_points("user-1", "salon-1", 25, award_key="e1") == (50, False)
        assert reopened.get_points("user-1", "salon-1") == 50
        assert reopened.get_points("user-1", "salon-2") == 0


def test_json_reputation_store_survives_restart():
    at = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonReputationStore(data_dir=tmpdir)
        assert store.get("user-1") is None
        store.update("user-1", lambda r: r.apply(ReputationAction.SUCCESSFUL_CHECK_IN, at))
        updated = store.update("user-1", lambda r: r.apply(ReputationAction.NO_SHOW, at))

        reopened = JsonReputationStore(data_dir=tmpdir)
        assert reopened.get("user-1") == updated
        assert updated.score == 47
        assert updated.trust_level == TrustLevel.NEW
        assert updated.last_no_show_at == at


def test_json_audit_log_keeps_order_per_entry():
    at = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    with tempfile.TemporaryDirectory() as tmpdir:
        log = JsonAuditLog(data_dir=tmpdir)
        notified = StatusTransitionRecord(
            entry_id="e1",
            salon_id="salon-1",
            user_id="user-1",
            old_status=QueueStatus.WAITING,
            new_status=QueueStatus.NOTIFIED,
            actor=Actor.STAFF,
            at=at,
        )
        other = replace(notified, entry_id="e2", user_id="user-2")
        cancelled = replace(
            notified,
            old_status=QueueStatus.NOTIFIED,
            new_status=QueueStatus.CANCELLED,
            actor=Actor.CUSTOMER,
            reason="Changed plans",
        )
        for record in (notified, other, cancelled):
            log.append(record)

        reopened = JsonAuditLog(data_dir=tmpdir)
        assert reopened.list_for_entry("e1") == [notified, cancelled]
        assert reopened.list_for_entry("e2") == [other]
        assert reopened.list_for_entry("e3") == []
