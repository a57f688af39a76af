"""
Impact analysis for a change order's affected parts.

For each affected part: which assemblies use it directly, and whether the
BOM below it is structurally sound. Plus the other open change orders in
the same project that touch any of the same parts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from .bom.graph import BomValidation, find_where_used, validate_bom_tree
from .catalog import PartCatalog
from .models import OPEN_STATUSES, ChangeOrder


@dataclass
class PartImpact:
    part_id: str
    part_number: str
    name: str
    where_used: list[str]
    validation: BomValidation

    def to_dict(self) -> dict[str, Any]:
        return {
            "part_id": self.part_id,
            "part_number": self.part_number,
            "name": self.name,
            "where_used": list(self.where_used),
            "validation": self.validation.to_dict(),
        }


@dataclass
class ImpactAnalysis:
    change_order_id: str
    affected_parts: list[PartImpact] = field(default_factory=list)
    related_change_orders: list[str] = field(default_factory=list)

    @property
    def where_used_count(self) -> int:
        return sum(len(p.where_used) for p in self.affected_parts)

    @property
    def errors(self) -> list[str]:
        return [e for p in self.affected_parts for e in p.validation.errors]

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def has_cycle(self) -> bool:
        return any(p.validation.has_cycle for p in self.affected_parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "change_order_id": self.change_order_id,
            "affected_parts": [p.to_dict() for p in self.affected_parts],
            "where_used_count": self.where_used_count,
            "related_change_orders": list(self.related_change_orders),
            "valid": self.valid,
            "errors": self.errors,
        }


def related_change_orders(order: ChangeOrder, others: Iterable[ChangeOrder]) -> list[str]:
    """Ids of other open orders in the same project sharing an affected part."""
    mine = set(order.affected_part_ids)
    related: list[str] = []
    for other in others:
        if other.id == order.id or other.project_id != order.project_id:
            continue
        if other.status not in OPEN_STATUSES:
            continue
        if mine.intersection(other.affected_part_ids):
            related.append(other.id)
    return related


def analyze_impact(
    order: ChangeOrder,
    catalog: PartCatalog,
    *,
    max_depth: int,
    related: Iterable[ChangeOrder] = (),
) -> ImpactAnalysis:
    parts = catalog.parts_by_id()
    all_edges = catalog.edges()

    analysis = ImpactAnalysis(change_order_id=order.id)
    for affected in order.affected_parts:
        analysis.affected_parts.append(
            PartImpact(
                part_id=affected.part_id,
                part_number=affected.part_number,
                name=affected.name,
                where_used=find_where_used(affected.part_id, all_edges),
                validation=validate_bom_tree(
                    affected.part_id, parts, catalog.bom_edges(affected.part_id), max_depth
                ),
            )
        )
    analysis.related_change_orders = related_change_orders(order, related)
    return analysis
