"""Pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator

import pytest

from changegate.audit import AuditTrail
from changegate.bus import EventBus
from changegate.catalog import InMemoryPartCatalog
from changegate.models import BomEdge, ChangeOrderInput, PartRecord
from changegate.store import InMemoryChangeOrderStore
from changegate.workflow import ChangeOrderStateMachine


@pytest.fixture
def catalog() -> InMemoryPartCatalog:
    """
    Small product structure:

        BIKE (rev B)
        ├── FRAME (rev C) x1
        │   └── BOLT x4
        └── WHEEL (rev A) x2
            └── BOLT x6
    """
    cat = InMemoryPartCatalog()
    cat.add_part(PartRecord(id="bike", part_number="BIKE-100", name="Bike", category="assembly", current_revision="B"))
    cat.add_part(PartRecord(id="frame", part_number="FRM-200", name="Frame", category="assembly", current_revision="C"))
    cat.add_part(PartRecord(id="wheel", part_number="WHL-300", name="Wheel", category="assembly", current_revision="A"))
    cat.add_part(PartRecord(id="bolt", part_number="BLT-400", name="Bolt", category="fastener"))
    cat.add_edge(BomEdge(parent_id="bike", child_id="frame", quantity="1", position=1))
    cat.add_edge(BomEdge(parent_id="bike", child_id="wheel", quantity="2", position=2))
    cat.add_edge(BomEdge(parent_id="frame", child_id="bolt", quantity="4"))
    cat.add_edge(BomEdge(parent_id="wheel", child_id="bolt", quantity="6"))
    return cat


@pytest.fixture
def bus() -> Iterator[EventBus]:
    bus = EventBus()
    yield bus
    bus.dispose()


@pytest.fixture
def published(bus: EventBus) -> list[tuple[str, Any]]:
    """Every (event_name, payload) published on `bus`, in order."""
    seen: list[tuple[str, Any]] = []
    bus.subscribe("*", lambda payload, name: seen.append((name, payload)))
    return seen


@pytest.fixture
def store(tmp_path: Path) -> InMemoryChangeOrderStore:
    return InMemoryChangeOrderStore(AuditTrail(tmp_path / ".changegate" / "audit.jsonl"))


@pytest.fixture
def machine(store: InMemoryChangeOrderStore, catalog: InMemoryPartCatalog, bus: EventBus) -> ChangeOrderStateMachine:
    return ChangeOrderStateMachine(store, catalog=catalog, bus=bus)


@pytest.fixture
def ecr_input() -> ChangeOrderInput:
    return ChangeOrderInput(
        project_id="proj-1",
        type="ECR",
        title="Replace frame bolts",
        reason="Field failures on M6 bolts",
        description="Switch to grade 10.9 fasteners",
        approver_ids=["U1", "U2"],
        affected_part_ids=["bike"],
    )
