"""Tests for BOM where-used, cycle detection, and tree validation."""

from __future__ import annotations

import pytest

from changegate.bom import detect_cycle, find_where_used, validate_bom_tree
from changegate.catalog import InMemoryPartCatalog
from changegate.errors import BomCycleError
from changegate.models import BomEdge, PartRecord


def _parts(*ids: str) -> dict[str, PartRecord]:
    return {i: PartRecord(id=i, part_number=i.upper(), name=i) for i in ids}


def _edge(parent: str, child: str, qty: str = "1") -> BomEdge:
    return BomEdge(parent_id=parent, child_id=child, quantity=qty)


# -----------------------------------------------------------------------------
# find_where_used
# -----------------------------------------------------------------------------


def test_where_used_returns_direct_parents(catalog: InMemoryPartCatalog) -> None:
    assert find_where_used("bolt", catalog.edges()) == ["frame", "wheel"]
    assert find_where_used("frame", catalog.edges()) == ["bike"]


def test_where_used_unknown_or_root_part_is_empty(catalog: InMemoryPartCatalog) -> None:
    assert find_where_used("bike", catalog.edges()) == []
    assert find_where_used("nope", catalog.edges()) == []


def test_where_used_is_distinct() -> None:
    edges = [_edge("a", "x"), _edge("a", "x", "3"), _edge("b", "x")]
    assert find_where_used("x", edges) == ["a", "b"]


# -----------------------------------------------------------------------------
# detect_cycle
# -----------------------------------------------------------------------------


def test_detect_cycle_self_reference() -> None:
    assert detect_cycle([], "a", "a")


def test_detect_cycle_when_child_is_ancestor() -> None:
    edges = [_edge("a", "b"), _edge("b", "c")]
    assert detect_cycle(edges, "c", "a")
    assert not detect_cycle(edges, "a", "c")


# -----------------------------------------------------------------------------
# validate_bom_tree
# -----------------------------------------------------------------------------


def test_valid_tree_with_shared_subassembly(catalog: InMemoryPartCatalog) -> None:
    # bolt is reached twice (frame and wheel); a diamond is not a cycle
    result = validate_bom_tree("bike", catalog.parts_by_id(), catalog.edges(), max_depth=10)
    assert result.valid
    assert result.errors == []


def test_missing_root_stops_immediately() -> None:
    result = validate_bom_tree("ghost", _parts("a"), [_edge("ghost", "a")], max_depth=10)
    assert not result.valid
    assert result.errors == ["Root part ghost not found"]


def test_two_node_cycle_is_reported() -> None:
    result = validate_bom_tree("a", _parts("a", "b"), [_edge("a", "b"), _edge("b", "a")], max_depth=10)
    assert not result.valid
    assert result.has_cycle
    assert any("Cycle detected at part a" == e for e in result.errors)


def test_errors_accumulate() -> None:
    edges = [_edge("a", "b"), _edge("a", "missing"), _edge("b", "a")]
    result = validate_bom_tree("a", _parts("a", "b"), edges, max_depth=10)
    assert "Child part missing not found (referenced by a)" in result.errors
    assert "Cycle detected at part a" in result.errors
    assert len(result.errors) == 2


def test_max_depth_exceeded() -> None:
    edges = [_edge("a", "b"), _edge("b", "c"), _edge("c", "d")]
    result = validate_bom_tree("a", _parts("a", "b", "c", "d"), edges, max_depth=2)
    assert not result.valid
    assert result.errors == ["Maximum depth 2 exceeded at part d"]
    assert not result.has_cycle


def test_to_dict() -> None:
    result = validate_bom_tree("ghost", {}, [], max_depth=1)
    assert result.to_dict() == {"valid": False, "errors": ["Root part ghost not found"]}


# -----------------------------------------------------------------------------
# Reference graphs
# -----------------------------------------------------------------------------

# A -> B -> D and A -> C -> D: D is shared, nothing loops
DIAMOND = [_edge("A", "B"), _edge("A", "C"), _edge("B", "D"), _edge("C", "D")]

# A -> B -> C -> A
TRIANGLE = [_edge("A", "B"), _edge("B", "C"), _edge("C", "A")]


def test_diamond_is_valid() -> None:
    result = validate_bom_tree("A", _parts("A", "B", "C", "D"), DIAMOND, max_depth=10)
    assert result.valid
    assert not result.has_cycle
    assert result.errors == []


def test_diamond_where_used() -> None:
    assert set(find_where_used("D", DIAMOND)) == {"B", "C"}
    assert find_where_used("D", DIAMOND) == ["B", "C"]
    assert find_where_used("B", DIAMOND) == ["A"]
    assert find_where_used("A", DIAMOND) == []


def test_three_node_cycle_is_reported() -> None:
    result = validate_bom_tree("A", _parts("A", "B", "C"), TRIANGLE, max_depth=10)
    assert not result.valid
    assert result.has_cycle
    assert result.errors == ["Cycle detected at part A"]


def test_three_node_cycle_is_reported_from_any_entry_point() -> None:
    result = validate_bom_tree("B", _parts("A", "B", "C"), TRIANGLE, max_depth=10)
    assert result.errors == ["Cycle detected at part B"]


def test_closing_the_triangle_is_detected() -> None:
    open_chain = TRIANGLE[:2]
    assert detect_cycle(open_chain, "C", "A")
    assert not detect_cycle(DIAMOND, "B", "C")


def test_catalog_refuses_edge_closing_three_node_cycle() -> None:
    cat = InMemoryPartCatalog(_parts("A", "B", "C").values())
    cat.add_edge(_edge("A", "B"))
    cat.add_edge(_edge("B", "C"))
    with pytest.raises(BomCycleError):
        cat.add_edge(_edge("C", "A"))
    assert len(cat.edges()) == 2
