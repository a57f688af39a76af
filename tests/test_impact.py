"""Tests for change-order impact analysis."""

from __future__ import annotations

import dataclasses

import pytest

from changegate.catalog import InMemoryPartCatalog
from changegate.errors import ValidationError
from changegate.models import BomEdge, ChangeOrderInput
from changegate.workflow import ChangeOrderStateMachine


def test_impact_reports_where_used_and_validation(
    machine: ChangeOrderStateMachine, ecr_input: ChangeOrderInput
) -> None:
    order = machine.create(dataclasses.replace(ecr_input, affected_part_ids=["bolt", "wheel"]), "alice")
    impact = machine.impact_analysis(order.id)

    by_part = {p.part_id: p for p in impact.affected_parts}
    assert by_part["bolt"].where_used == ["frame", "wheel"]
    assert by_part["wheel"].where_used == ["bike"]
    assert impact.where_used_count == 3
    assert impact.valid
    assert not impact.has_cycle
    assert impact.to_dict()["errors"] == []


def test_related_change_orders_share_parts_and_are_open(
    machine: ChangeOrderStateMachine, ecr_input: ChangeOrderInput
) -> None:
    mine = machine.create(dataclasses.replace(ecr_input, affected_part_ids=["bolt"]), "alice")
    overlapping = machine.create(dataclasses.replace(ecr_input, affected_part_ids=["bolt", "frame"]), "bob")
    machine.create(dataclasses.replace(ecr_input, affected_part_ids=["wheel"]), "bob")
    elsewhere = machine.create(
        dataclasses.replace(ecr_input, project_id="proj-2", affected_part_ids=["bolt"]), "bob"
    )

    related = machine.impact_analysis(mine.id).related_change_orders
    assert related == [overlapping.id]
    assert elsewhere.id not in related


def test_closed_orders_are_not_related(machine: ChangeOrderStateMachine, ecr_input: ChangeOrderInput) -> None:
    mine = machine.create(dataclasses.replace(ecr_input, affected_part_ids=["bolt"]), "alice")
    old = machine.create(dataclasses.replace(ecr_input, affected_part_ids=["bolt"], approver_ids=["U1"]), "bob")
    machine.submit(old.id)
    machine.accept_for_review(old.id)
    machine.review(old.id, "U1", "rejected")

    assert machine.impact_analysis(mine.id).related_change_orders == []


def test_impact_requires_catalog(ecr_input: ChangeOrderInput) -> None:
    machine = ChangeOrderStateMachine()
    order = machine.create(dataclasses.replace(ecr_input, affected_part_ids=[]), "alice")
    with pytest.raises(ValidationError, match="requires a part catalog"):
        machine.impact_analysis(order.id)


def test_impact_flags_missing_child(catalog: InMemoryPartCatalog, ecr_input: ChangeOrderInput) -> None:
    broken = InMemoryPartCatalog(catalog.parts_by_id().values(), [*catalog.edges(), BomEdge("wheel", "spoke")])
    machine = ChangeOrderStateMachine(catalog=broken)
    order = machine.create(dataclasses.replace(ecr_input, affected_part_ids=["wheel"]), "alice")

    impact = machine.impact_analysis(order.id)
    assert not impact.valid
    assert impact.errors == ["Child part spoke not found (referenced by wheel)"]
