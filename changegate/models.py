"""
Core data model for change orders.

ChangeOrder is the aggregate. Approver and AffectedPart belong to exactly
one change order; AuditEntry is immutable once sealed by the AuditTrail.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class ChangeOrderType(str, Enum):
    """Engineering Change Request vs Engineering Change Notice."""

    ECR = "ECR"
    ECN = "ECN"


class ChangeOrderStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    IMPLEMENTED = "implemented"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Priority(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


TERMINAL_STATUSES = frozenset({ChangeOrderStatus.REJECTED, ChangeOrderStatus.IMPLEMENTED})

# Statuses in which a change order still competes for its affected parts
OPEN_STATUSES = frozenset({
    ChangeOrderStatus.DRAFT,
    ChangeOrderStatus.SUBMITTED,
    ChangeOrderStatus.IN_REVIEW,
    ChangeOrderStatus.APPROVED,
})


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def freeze(value: Any) -> Any:
    """Read-only deep copy of JSON-like data: mappings become proxies, lists tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw(v) for v in value]
    return value


@dataclass
class Approver:
    """One required sign-off on a change order."""

    id: str
    change_order_id: str
    user_id: str
    status: ApprovalStatus = ApprovalStatus.PENDING
    comment: str | None = None
    reviewed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "change_order_id": self.change_order_id,
            "user_id": self.user_id,
            "status": self.status.value,
            "comment": self.comment,
            "reviewed_at": _dt(self.reviewed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Approver:
        return cls(
            id=data["id"],
            change_order_id=data["change_order_id"],
            user_id=data["user_id"],
            status=ApprovalStatus(data.get("status", "pending")),
            comment=data.get("comment"),
            reviewed_at=_parse_dt(data.get("reviewed_at")),
        )


@dataclass
class AffectedPart:
    """
    Snapshot of a part as it was when the change order referenced it.

    Fields are copied from the catalog once, at creation, and never
    refreshed. `new_revision` is filled in when the change is implemented.
    """

    change_order_id: str
    part_id: str
    part_number: str
    name: str
    category: str | None = None
    status_snapshot: str | None = None
    revision_snapshot: str | None = None
    new_revision: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "change_order_id": self.change_order_id,
            "part_id": self.part_id,
            "part_number": self.part_number,
            "name": self.name,
            "category": self.category,
            "status_snapshot": self.status_snapshot,
            "revision_snapshot": self.revision_snapshot,
            "new_revision": self.new_revision,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AffectedPart:
        return cls(
            change_order_id=data["change_order_id"],
            part_id=data["part_id"],
            part_number=data["part_number"],
            name=data["name"],
            category=data.get("category"),
            status_snapshot=data.get("status_snapshot"),
            revision_snapshot=data.get("revision_snapshot"),
            new_revision=data.get("new_revision"),
        )


@dataclass
class ChangeOrder:
    """An ECR or ECN moving through the review lifecycle."""

    id: str
    type: ChangeOrderType
    number: str
    title: str
    reason: str
    project_id: str
    created_by: str
    created_at: datetime
    updated_at: datetime
    description: str = ""
    status: ChangeOrderStatus = ChangeOrderStatus.DRAFT
    priority: Priority = Priority.MEDIUM
    approvers: list[Approver] = field(default_factory=list)
    affected_parts: list[AffectedPart] = field(default_factory=list)
    version: int = 1
    implemented_at: datetime | None = None
    implemented_revision_id: str | None = None

    @property
    def display_number(self) -> str:
        """Human-facing identifier, e.g. ECR-007."""
        return f"{self.type.value}-{self.number}"

    @property
    def approver_ids(self) -> list[str]:
        return [a.user_id for a in self.approvers]

    @property
    def affected_part_ids(self) -> list[str]:
        return [p.part_id for p in self.affected_parts]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def clone(self) -> ChangeOrder:
        """Deep copy; mutating the copy leaves this instance untouched."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "id": self.id,
            "type": self.type.value,
            "number": self.number,
            "display_number": self.display_number,
            "title": self.title,
            "description": self.description,
            "reason": self.reason,
            "status": self.status.value,
            "priority": self.priority.value,
            "project_id": self.project_id,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "approvers": [a.to_dict() for a in self.approvers],
            "affected_parts": [p.to_dict() for p in self.affected_parts],
            "version": self.version,
            "implemented_at": _dt(self.implemented_at),
            "implemented_revision_id": self.implemented_revision_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChangeOrder:
        """Reconstruct from JSON dict."""
        return cls(
            id=data["id"],
            type=ChangeOrderType(data["type"]),
            number=data["number"],
            title=data["title"],
            description=data.get("description", ""),
            reason=data["reason"],
            status=ChangeOrderStatus(data.get("status", "draft")),
            priority=Priority(data.get("priority", "medium")),
            project_id=data["project_id"],
            created_by=data["created_by"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            approvers=[Approver.from_dict(a) for a in data.get("approvers", [])],
            affected_parts=[AffectedPart.from_dict(p) for p in data.get("affected_parts", [])],
            version=int(data.get("version", 1)),
            implemented_at=_parse_dt(data.get("implemented_at")),
            implemented_revision_id=data.get("implemented_revision_id"),
        )


@dataclass
class ChangeOrderInput:
    """Caller-supplied fields for creating a change order."""

    project_id: str
    type: ChangeOrderType | str
    title: str
    reason: str
    description: str = ""
    priority: Priority | str = Priority.MEDIUM
    approver_ids: list[str] = field(default_factory=list)
    affected_part_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AuditEntry:
    """
    Immutable record of one state-changing operation.

    Entries handed to AuditTrail.append() carry sequence=0 and no
    timestamp; the trail returns a sealed copy with both assigned and
    its metadata frozen (see freeze()).
    """

    id: str
    change_order_id: str
    actor_id: str
    event_type: str
    from_status: str | None
    to_status: str | None
    comment: str | None = None
    sequence: int = 0
    timestamp: datetime | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "change_order_id": self.change_order_id,
            "actor_id": self.actor_id,
            "event_type": self.event_type,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "sequence": self.sequence,
            "timestamp": _dt(self.timestamp),
        }
        if self.comment is not None:
            result["comment"] = self.comment
        if self.metadata:
            result["metadata"] = thaw(self.metadata)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditEntry:
        return cls(
            id=data["id"],
            change_order_id=data["change_order_id"],
            actor_id=data["actor_id"],
            event_type=data["event_type"],
            from_status=data.get("from_status"),
            to_status=data.get("to_status"),
            comment=data.get("comment"),
            sequence=int(data.get("sequence", 0)),
            timestamp=_parse_dt(data.get("timestamp")),
            metadata=data.get("metadata", {}),
        )


@dataclass(frozen=True)
class BomEdge:
    """Directed parent -> child usage with quantity."""

    parent_id: str
    child_id: str
    quantity: str = "1"
    unit: str = "EA"
    position: int = 0
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "parent_id": self.parent_id,
            "child_id": self.child_id,
            "quantity": self.quantity,
            "unit": self.unit,
            "position": self.position,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BomEdge:
        return cls(
            parent_id=str(data["parent_id"]),
            child_id=str(data["child_id"]),
            quantity=str(data.get("quantity", "1")),
            unit=str(data.get("unit") or "EA"),
            position=int(data.get("position", 0)),
            notes=data.get("notes"),
        )


@dataclass
class PartRecord:
    """Catalog view of a part, as supplied by a PartCatalog."""

    id: str
    part_number: str
    name: str
    category: str | None = None
    status: str = "draft"
    current_revision: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "part_number": self.part_number,
            "name": self.name,
            "category": self.category,
            "status": self.status,
            "current_revision": self.current_revision,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PartRecord:
        return cls(
            id=str(data["id"]),
            part_number=str(data.get("part_number", data["id"])),
            name=str(data.get("name", "")),
            category=data.get("category"),
            status=str(data.get("status", "draft")),
            current_revision=data.get("current_revision"),
        )
