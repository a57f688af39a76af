"""Expanded BOM trees: build, flatten, and roll up quantities."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from ..errors import BomCycleError, NotFoundError, ValidationError
from ..models import BomEdge, PartRecord
from .graph import children_index


@dataclass
class BomTreeNode:
    """One occurrence of a part in an expanded BOM."""

    part_id: str
    part_number: str
    name: str
    category: str | None
    revision: str | None
    quantity: str
    unit: str
    level: int
    path: str  # "ASSY-1 > SUB-2 > BOLT-3"
    position: int = 0
    notes: str | None = None
    children: list[BomTreeNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "part_id": self.part_id,
            "part_number": self.part_number,
            "name": self.name,
            "category": self.category,
            "revision": self.revision,
            "quantity": self.quantity,
            "unit": self.unit,
            "level": self.level,
            "path": self.path,
            "position": self.position,
            "notes": self.notes,
            "children": [c.to_dict() for c in self.children],
        }


@dataclass(frozen=True)
class FlatBomItem:
    """A BomTreeNode without its children, as listed by flatten_bom_tree()."""

    part_id: str
    part_number: str
    name: str
    quantity: str
    unit: str
    level: int
    path: str


def build_bom_tree(
    root_id: str,
    parts_by_id: Mapping[str, PartRecord],
    edges: Iterable[BomEdge],
    max_depth: int,
) -> BomTreeNode:
    """
    Expand the BOM under `root_id` into a tree.

    Children are ordered by position. Raises BomCycleError when a part is
    reached again on its own path, NotFoundError for an edge pointing at an
    unknown part, and ValidationError past `max_depth`.
    """
    index = children_index(edges)

    def build(part_id: str, edge: BomEdge | None, level: int, parent_path: str, ancestors: frozenset[str]) -> BomTreeNode:
        if level > max_depth:
            raise ValidationError(f"Maximum BOM depth of {max_depth} exceeded at part {part_id}", field="max_depth")
        if part_id in ancestors:
            raise BomCycleError(f"Cycle detected in BOM at part {part_id}", part_id=part_id)

        part = parts_by_id.get(part_id)
        if part is None:
            raise NotFoundError("Part", part_id)

        path = f"{parent_path} > {part.part_number}" if parent_path else part.part_number
        node = BomTreeNode(
            part_id=part.id,
            part_number=part.part_number,
            name=part.name,
            category=part.category,
            revision=part.current_revision,
            quantity=edge.quantity if edge else "1",
            unit=(edge.unit or "EA") if edge else "EA",
            level=level,
            path=path,
            position=edge.position if edge else 0,
            notes=edge.notes if edge else None,
        )
        below = ancestors | {part_id}
        for child_edge in index.get(part_id, []):
            node.children.append(build(child_edge.child_id, child_edge, level + 1, path, below))
        return node

    return build(root_id, None, 0, "", frozenset())


def flatten_bom_tree(tree: BomTreeNode) -> list[FlatBomItem]:
    """Depth-first, pre-order listing of every occurrence in the tree."""
    items: list[FlatBomItem] = []
    stack = [tree]
    while stack:
        node = stack.pop()
        items.append(
            FlatBomItem(
                part_id=node.part_id,
                part_number=node.part_number,
                name=node.name,
                quantity=node.quantity,
                unit=node.unit,
                level=node.level,
                path=node.path,
            )
        )
        stack.extend(reversed(node.children))
    return items


def _to_decimal(quantity: str) -> Decimal:
    try:
        return Decimal(quantity)
    except InvalidOperation:
        raise ValidationError(f"Invalid quantity: {quantity!r}", field="quantity") from None


def calculate_total_quantity(tree: BomTreeNode, part_id: str) -> Decimal:
    """
    Total quantity of `part_id` needed to build one of the tree's root.

    Quantities multiply down each path and every occurrence is summed, so a
    bolt used twice in each of three sub-assemblies totals six.
    """
    total = Decimal(0)
    stack: list[tuple[BomTreeNode, Decimal]] = [(tree, Decimal(1))]
    while stack:
        node, multiplier = stack.pop()
        # The root quantity is the build quantity, not a usage
        qty = multiplier if node.level == 0 else multiplier * _to_decimal(node.quantity)
        if node.part_id == part_id:
            total += qty
        for child in node.children:
            stack.append((child, qty))
    return total
