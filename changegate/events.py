"""
Typed events published by the change-order state machine.

Each committed lifecycle step publishes one or more of these on the
machine's EventBus, always after the store commit succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields as dataclass_fields
from datetime import datetime
from typing import Any, Mapping

# Event name constants
CHANGE_ORDER_CREATED = "change_order.created"
CHANGE_ORDER_UPDATED = "change_order.updated"
CHANGE_ORDER_DELETED = "change_order.deleted"
CHANGE_ORDER_STATUS_CHANGED = "change_order.status_changed"
CHANGE_ORDER_SUBMITTED = "change_order.submitted"
CHANGE_ORDER_VOTE_RECORDED = "change_order.vote_recorded"
CHANGE_ORDER_APPROVED = "change_order.approved"
CHANGE_ORDER_REJECTED = "change_order.rejected"
CHANGE_ORDER_IMPLEMENTED = "change_order.implemented"

EVENT_NAMES = frozenset({
    CHANGE_ORDER_CREATED,
    CHANGE_ORDER_UPDATED,
    CHANGE_ORDER_DELETED,
    CHANGE_ORDER_STATUS_CHANGED,
    CHANGE_ORDER_SUBMITTED,
    CHANGE_ORDER_VOTE_RECORDED,
    CHANGE_ORDER_APPROVED,
    CHANGE_ORDER_REJECTED,
    CHANGE_ORDER_IMPLEMENTED,
})


@dataclass(frozen=True)
class _Payload:
    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for f in dataclass_fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, tuple):
                value = list(value)
            elif isinstance(value, Mapping):
                value = dict(value)
            result[f.name] = value
        return result


@dataclass(frozen=True)
class ChangeOrderCreated(_Payload):
    change_order_id: str
    project_id: str
    type: str
    number: str
    title: str
    requester_id: str
    approver_ids: tuple[str, ...] = ()
    affected_part_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class ChangeOrderUpdated(_Payload):
    change_order_id: str
    updated_by: str
    fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class ChangeOrderDeleted(_Payload):
    change_order_id: str
    project_id: str
    deleted_by: str


@dataclass(frozen=True)
class StatusChanged(_Payload):
    change_order_id: str
    from_status: str
    to_status: str
    changed_by: str
    comment: str | None = None


# submitted / approved / rejected / implemented carry the order's context:
# change_order_id, type, number, title, project_id


@dataclass(frozen=True)
class ChangeOrderSubmitted(_Payload):
    change_order_id: str
    type: str
    number: str
    title: str
    project_id: str
    submitted_by: str
    submitted_at: datetime
    approver_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class VoteRecorded(_Payload):
    change_order_id: str
    approver_id: str
    decision: str
    approved: int
    total: int
    pending_approver_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class ChangeOrderApproved(_Payload):
    change_order_id: str
    type: str
    number: str
    title: str
    project_id: str
    approver_id: str
    approved_at: datetime
    approver_comment: str | None = None


@dataclass(frozen=True)
class ChangeOrderRejected(_Payload):
    change_order_id: str
    type: str
    number: str
    title: str
    project_id: str
    rejecter_id: str
    rejected_at: datetime
    rejection_reason: str | None = None


@dataclass(frozen=True)
class ChangeOrderImplemented(_Payload):
    change_order_id: str
    type: str
    number: str
    title: str
    project_id: str
    implemented_by: str
    implemented_at: datetime
    implemented_revision_id: str | None = None
    revisions: dict[str, str] = field(default_factory=dict)  # part_id -> new revision code
