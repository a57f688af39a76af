"""Tests for the append-only audit trail."""

from __future__ import annotations

import dataclasses
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from changegate.audit import AuditTrail
from changegate.models import AuditEntry


def _entry(change_order_id: str, event_type: str = "status_changed", **kwargs) -> AuditEntry:
    return AuditEntry(
        id=f"aud-{event_type}",
        change_order_id=change_order_id,
        actor_id="U1",
        event_type=event_type,
        from_status=kwargs.pop("from_status", "draft"),
        to_status=kwargs.pop("to_status", "submitted"),
        **kwargs,
    )


def test_sequences_are_per_change_order() -> None:
    trail = AuditTrail()
    a1 = trail.append(_entry("co-a"))
    b1 = trail.append(_entry("co-b"))
    a2 = trail.append(_entry("co-a"))

    assert (a1.sequence, a2.sequence, b1.sequence) == (1, 2, 1)
    assert [e.sequence for e in trail.list("co-a")] == [1, 2]
    assert trail.count() == 3
    assert trail.count("co-b") == 1
    assert trail.list("unknown") == []


def test_append_seals_timestamp_from_clock() -> None:
    fixed = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    trail = AuditTrail(clock=lambda: fixed)
    sealed = trail.append(_entry("co-a"))
    assert sealed.timestamp == fixed


def test_entries_are_immutable() -> None:
    sealed = AuditTrail().append(_entry("co-a"))
    with pytest.raises(dataclasses.FrozenInstanceError):
        sealed.comment = "edited"  # type: ignore[misc]


def test_trail_has_no_update_or_delete() -> None:
    trail = AuditTrail()
    assert not hasattr(trail, "update")
    assert not hasattr(trail, "delete")
    assert not hasattr(trail, "remove")


def test_jsonl_backing_appends_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "ledger" / "audit.jsonl"
    trail = AuditTrail(path)
    trail.append(_entry("co-a", comment="Submitted for review"))
    trail.append(_entry("co-a", from_status="submitted", to_status="in_review"))

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0])["comment"] == "Submitted for review"

    reopened = AuditTrail(path)
    assert [e.to_status for e in reopened.list("co-a")] == ["submitted", "in_review"]
    assert reopened.append(_entry("co-a")).sequence == 3
    assert reopened.change_order_ids() == ["co-a"]


def test_corrupt_ledger_line_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "audit.jsonl"
    path.write_text("{not json}\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Corrupt audit ledger"):
        AuditTrail(path).list("co-a")
