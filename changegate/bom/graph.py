"""
BOM graph consistency checks.

Edges point from an assembly (parent) to a component (child). A part may
appear under several parents (a diamond) without that being a cycle;
only a part that is its own ancestor on one path is a cycle.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from ..models import BomEdge, PartRecord


@dataclass
class BomValidation:
    """Outcome of validate_bom_tree(); `errors` is empty iff `valid`."""

    valid: bool
    errors: list[str] = field(default_factory=list)

    @property
    def has_cycle(self) -> bool:
        return any(e.startswith("Cycle detected") for e in self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors)}


def children_index(edges: Iterable[BomEdge]) -> dict[str, list[BomEdge]]:
    """parent_id -> outgoing edges, each list ordered by position."""
    index: dict[str, list[BomEdge]] = defaultdict(list)
    for edge in edges:
        index[edge.parent_id].append(edge)
    for outgoing in index.values():
        outgoing.sort(key=lambda e: e.position)
    return index


def find_where_used(part_id: str, edges: Iterable[BomEdge]) -> list[str]:
    """
    Direct parents of `part_id`.

    Distinct, in first-seen order. An unknown or unused part yields [].
    """
    seen: set[str] = set()
    parents: list[str] = []
    for edge in edges:
        if edge.child_id == part_id and edge.parent_id not in seen:
            seen.add(edge.parent_id)
            parents.append(edge.parent_id)
    return parents


def detect_cycle(edges: Iterable[BomEdge], parent_id: str, child_id: str) -> bool:
    """
    Would adding parent_id -> child_id close a cycle?

    True for a self reference, or when parent_id is already reachable from
    child_id through the existing edges.
    """
    if parent_id == child_id:
        return True

    index = children_index(edges)
    visited: set[str] = set()
    stack = [child_id]
    while stack:
        current = stack.pop()
        if current == parent_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        for edge in index.get(current, []):
            if edge.child_id not in visited:
                stack.append(edge.child_id)
    return False


def validate_bom_tree(
    root_id: str,
    parts_by_id: Mapping[str, PartRecord],
    edges: Iterable[BomEdge],
    max_depth: int,
) -> BomValidation:
    """
    Walk the BOM from `root_id` and report every structural problem.

    Errors accumulate rather than stopping at the first one, except for a
    missing root which ends the walk immediately. Cycle detection uses the
    set of parts on the current path, so shared sub-assemblies are fine.
    """
    if root_id not in parts_by_id:
        return BomValidation(valid=False, errors=[f"Root part {root_id} not found"])

    index = children_index(edges)
    errors: list[str] = []

    def walk(part_id: str, depth: int, path: frozenset[str]) -> None:
        if depth > max_depth:
            errors.append(f"Maximum depth {max_depth} exceeded at part {part_id}")
            return
        if part_id in path:
            errors.append(f"Cycle detected at part {part_id}")
            return

        on_path = path | {part_id}
        for edge in index.get(part_id, []):
            if edge.child_id not in parts_by_id:
                errors.append(f"Child part {edge.child_id} not found (referenced by {part_id})")
                continue
            walk(edge.child_id, depth + 1, on_path)

    walk(root_id, 0, frozenset())
    return BomValidation(valid=not errors, errors=errors)
