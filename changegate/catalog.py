"""
Part catalog adapter.

The state machine never owns part master data. It reads part snapshots
and BOM edges through the PartCatalog protocol; InMemoryPartCatalog is the
reference implementation, also used by the CLI to load a catalog file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

from .bom.graph import children_index, detect_cycle
from .errors import BomCycleError, NotFoundError, ValidationError
from .models import BomEdge, PartRecord


@runtime_checkable
class PartCatalog(Protocol):
    """Read access to part master data and the BOM edge set."""

    def get_part(self, part_id: str) -> PartRecord | None:
        ...

    def parts_by_id(self) -> Mapping[str, PartRecord]:
        ...

    def edges(self) -> list[BomEdge]:
        ...

    def bom_edges(self, root_id: str) -> list[BomEdge]:
        """Edges reachable from `root_id`."""
        ...


class InMemoryPartCatalog:
    """Dictionary-backed PartCatalog."""

    def __init__(self, parts: Iterable[PartRecord] = (), edges: Iterable[BomEdge] = ()):
        self._parts: dict[str, PartRecord] = {}
        self._edges: list[BomEdge] = []
        for part in parts:
            self.add_part(part)
        # Bulk-loaded edges are not cycle-checked
        self._edges.extend(edges)

    def add_part(self, part: PartRecord) -> PartRecord:
        if part.id in self._parts:
            raise ValidationError(f"Part {part.id} already exists", field="id")
        self._parts[part.id] = part
        return part

    def add_edge(self, edge: BomEdge) -> BomEdge:
        """Add a usage, refusing unknown parts and edges that would close a cycle."""
        for part_id in (edge.parent_id, edge.child_id):
            if part_id not in self._parts:
                raise NotFoundError("Part", part_id)
        if detect_cycle(self._edges, edge.parent_id, edge.child_id):
            raise BomCycleError(
                f"Adding {edge.child_id} under {edge.parent_id} would create a cycle in the BOM",
                part_id=edge.child_id,
            )
        self._edges.append(edge)
        return edge

    def set_revision(self, part_id: str, revision: str | None) -> None:
        part = self._parts.get(part_id)
        if part is None:
            raise NotFoundError("Part", part_id)
        part.current_revision = revision

    def get_part(self, part_id: str) -> PartRecord | None:
        return self._parts.get(part_id)

    def parts_by_id(self) -> Mapping[str, PartRecord]:
        return dict(self._parts)

    def edges(self) -> list[BomEdge]:
        return list(self._edges)

    def bom_edges(self, root_id: str) -> list[BomEdge]:
        index = children_index(self._edges)
        seen: set[str] = set()
        result: list[BomEdge] = []
        stack = [root_id]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            for edge in index.get(current, []):
                result.append(edge)
                stack.append(edge.child_id)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InMemoryPartCatalog:
        """
        Build a catalog from {"parts": [...], "edges": [...]}.

        Edges are not cycle-checked here; validate_bom_tree() reports them.
        """
        parts_raw = data.get("parts", [])
        edges_raw = data.get("edges", [])
        if not isinstance(parts_raw, list) or not isinstance(edges_raw, list):
            raise ValidationError("catalog 'parts' and 'edges' must be lists")
        try:
            parts = [PartRecord.from_dict(p) for p in parts_raw]
            edges = [BomEdge.from_dict(e) for e in edges_raw]
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Malformed catalog entry: {e}") from e
        return cls(parts, edges)

    @classmethod
    def load_json(cls, path: Path) -> InMemoryPartCatalog:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValidationError(f"Catalog file {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError(f"Catalog file {path} must contain a JSON object")
        return cls.from_dict(data)
