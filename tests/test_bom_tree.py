"""Tests for BOM tree expansion, flattening, and quantity roll-up."""

from __future__ import annotations

from decimal import Decimal

import pytest

from changegate.bom import build_bom_tree, calculate_total_quantity, flatten_bom_tree
from changegate.catalog import InMemoryPartCatalog
from changegate.errors import BomCycleError, NotFoundError, ValidationError
from changegate.models import BomEdge, PartRecord


def test_build_tree_orders_children_by_position(catalog: InMemoryPartCatalog) -> None:
    tree = build_bom_tree("bike", catalog.parts_by_id(), catalog.edges(), max_depth=10)

    assert tree.part_number == "BIKE-100"
    assert tree.quantity == "1"
    assert tree.unit == "EA"
    assert tree.level == 0
    assert [c.part_id for c in tree.children] == ["frame", "wheel"]
    assert tree.children[1].quantity == "2"
    assert tree.children[0].children[0].path == "BIKE-100 > FRM-200 > BLT-400"
    assert tree.children[0].children[0].level == 2


def test_flatten_is_depth_first(catalog: InMemoryPartCatalog) -> None:
    tree = build_bom_tree("bike", catalog.parts_by_id(), catalog.edges(), max_depth=10)
    flat = flatten_bom_tree(tree)
    assert [(i.part_id, i.level) for i in flat] == [
        ("bike", 0),
        ("frame", 1),
        ("bolt", 2),
        ("wheel", 1),
        ("bolt", 2),
    ]


def test_total_quantity_multiplies_along_paths(catalog: InMemoryPartCatalog) -> None:
    tree = build_bom_tree("bike", catalog.parts_by_id(), catalog.edges(), max_depth=10)
    # 1 frame * 4 + 2 wheels * 6
    assert calculate_total_quantity(tree, "bolt") == Decimal(16)
    assert calculate_total_quantity(tree, "wheel") == Decimal(2)
    assert calculate_total_quantity(tree, "bike") == Decimal(1)
    assert calculate_total_quantity(tree, "unused") == Decimal(0)


def test_build_tree_raises_on_cycle() -> None:
    parts = {i: PartRecord(id=i, part_number=i, name=i) for i in ("a", "b")}
    edges = [BomEdge("a", "b"), BomEdge("b", "a")]
    with pytest.raises(BomCycleError, match="Cycle detected"):
        build_bom_tree("a", parts, edges, max_depth=10)


def test_build_tree_raises_on_missing_part() -> None:
    parts = {"a": PartRecord(id="a", part_number="A", name="a")}
    with pytest.raises(NotFoundError, match="Part with ID b not found"):
        build_bom_tree("a", parts, [BomEdge("a", "b")], max_depth=10)


def test_build_tree_raises_past_max_depth() -> None:
    parts = {i: PartRecord(id=i, part_number=i, name=i) for i in ("a", "b", "c")}
    with pytest.raises(ValidationError, match="Maximum BOM depth of 1"):
        build_bom_tree("a", parts, [BomEdge("a", "b"), BomEdge("b", "c")], max_depth=1)


def test_catalog_refuses_cycle_closing_edge(catalog: InMemoryPartCatalog) -> None:
    with pytest.raises(BomCycleError):
        catalog.add_edge(BomEdge(parent_id="bolt", child_id="bike"))
    with pytest.raises(NotFoundError):
        catalog.add_edge(BomEdge(parent_id="bike", child_id="ghost"))


def test_catalog_bom_edges_are_reachable_subset(catalog: InMemoryPartCatalog) -> None:
    edges = catalog.bom_edges("wheel")
    assert [(e.parent_id, e.child_id) for e in edges] == [("wheel", "bolt")]
    assert len(catalog.bom_edges("bike")) == 4
