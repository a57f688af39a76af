"""
Change-order lifecycle.

    draft -> submitted -> in_review -> approved -> implemented
                                   \\-> rejected

rejected and implemented are terminal. A rejected change is never
resubmitted; the revised change is raised as a new change order.

Every operation follows the same shape: load a private copy of the order,
check access and the transition guard, apply the change to the copy, then
commit the copy together with exactly one audit entry. Events go out only
after the commit succeeded. A guard failure or a failed commit leaves the
stored order, its approver votes and its audit trail untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from .audit import AuditTrail
from .bus import EventBus
from .catalog import PartCatalog
from .config import Settings
from .errors import (
    AccessError,
    BomCycleError,
    InvalidTransitionError,
    MissingApproversError,
    NotFoundError,
    ValidationError,
)
from .events import (
    CHANGE_ORDER_APPROVED,
    CHANGE_ORDER_CREATED,
    CHANGE_ORDER_DELETED,
    CHANGE_ORDER_IMPLEMENTED,
    CHANGE_ORDER_REJECTED,
    CHANGE_ORDER_STATUS_CHANGED,
    CHANGE_ORDER_SUBMITTED,
    CHANGE_ORDER_UPDATED,
    CHANGE_ORDER_VOTE_RECORDED,
    ChangeOrderApproved,
    ChangeOrderCreated,
    ChangeOrderDeleted,
    ChangeOrderImplemented,
    ChangeOrderRejected,
    ChangeOrderSubmitted,
    ChangeOrderUpdated,
    StatusChanged,
    VoteRecorded,
)
from .impact import ImpactAnalysis, analyze_impact
from .models import (
    AffectedPart,
    ApprovalStatus,
    Approver,
    AuditEntry,
    ChangeOrder,
    ChangeOrderInput,
    ChangeOrderStatus,
    ChangeOrderType,
    Priority,
)
from .quorum import ApprovalProgress, ApproverQuorum
from .revision import next_revision_code
from .store import ChangeOrderStore, InMemoryChangeOrderStore
from .util import Clock, new_id, utc_now

logger = logging.getLogger(__name__)


TRANSITIONS: dict[ChangeOrderStatus, frozenset[ChangeOrderStatus]] = {
    ChangeOrderStatus.DRAFT: frozenset({ChangeOrderStatus.SUBMITTED}),
    ChangeOrderStatus.SUBMITTED: frozenset({ChangeOrderStatus.IN_REVIEW}),
    ChangeOrderStatus.IN_REVIEW: frozenset({ChangeOrderStatus.APPROVED, ChangeOrderStatus.REJECTED}),
    ChangeOrderStatus.APPROVED: frozenset({ChangeOrderStatus.IMPLEMENTED}),
    ChangeOrderStatus.REJECTED: frozenset(),
    ChangeOrderStatus.IMPLEMENTED: frozenset(),
}

# Audit entry event types
AUDIT_CREATED = "created"
AUDIT_UPDATED = "updated"
AUDIT_DELETED = "deleted"
AUDIT_STATUS_CHANGED = "status_changed"
AUDIT_VOTE_RECORDED = "vote_recorded"

# Actions passed to the access policy
ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"
ACTION_SUBMIT = "submit"
ACTION_ACCEPT = "accept_for_review"
ACTION_REVIEW = "review"
ACTION_IMPLEMENT = "implement"

# (actor, action, change order or None for create) -> allowed?
AccessPolicy = Callable[[str, str, "ChangeOrder | None"], bool]


def can_transition(from_status: ChangeOrderStatus, to_status: ChangeOrderStatus) -> bool:
    return to_status in TRANSITIONS.get(from_status, frozenset())


@dataclass
class ProjectStatistics:
    project_id: str
    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_type: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "total": self.total,
            "by_status": dict(self.by_status),
            "by_type": dict(self.by_type),
        }


class ChangeOrderStateMachine:
    """
    Drives change orders through their lifecycle.

    Collaborators are injected: the store (persistence and audit), an
    optional part catalog (affected-part snapshots and BOM impact), the
    event bus, settings, and an optional access policy. When no bus is
    given the machine creates one and disposes of it in close().
    """

    def __init__(
        self,
        store: ChangeOrderStore | None = None,
        *,
        catalog: PartCatalog | None = None,
        bus: EventBus | None = None,
        settings: Settings | None = None,
        access_policy: AccessPolicy | None = None,
        clock: Clock = utc_now,
    ):
        if store is None:
            ledger = settings.ledger_path if settings is not None else None
            store = InMemoryChangeOrderStore(AuditTrail(ledger, clock=clock))
        self.store = store
        self.catalog = catalog
        self._owns_bus = bus is None
        self.bus = bus if bus is not None else EventBus()
        self.settings = settings or Settings()
        self.access_policy = access_policy
        self._clock = clock

    def close(self) -> None:
        if self._owns_bus:
            self.bus.dispose()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _load(self, change_order_id: str) -> ChangeOrder:
        order = self.store.get(change_order_id)
        if order is None:
            raise NotFoundError("Change order", change_order_id)
        return order

    def _authorize(self, actor: str, action: str, order: ChangeOrder | None) -> None:
        if self.access_policy is not None and not self.access_policy(actor, action, order):
            raise AccessError(actor, action, order.id if order is not None else None)

    def _guard(self, order: ChangeOrder, target: ChangeOrderStatus) -> None:
        if not can_transition(order.status, target):
            raise InvalidTransitionError(
                f"Cannot move change order {order.id} from {order.status.value} to {target.value}",
                from_status=order.status.value,
                to_status=target.value,
            )

    def _require_draft(self, order: ChangeOrder, action: str) -> None:
        if order.status is not ChangeOrderStatus.DRAFT:
            raise InvalidTransitionError(
                f"Only draft change orders can be {action} (status={order.status.value})",
                from_status=order.status.value,
            )

    def _entry(
        self,
        order: ChangeOrder,
        actor: str,
        event_type: str,
        from_status: ChangeOrderStatus | None,
        to_status: ChangeOrderStatus | None,
        comment: str | None = None,
        **metadata: Any,
    ) -> AuditEntry:
        return AuditEntry(
            id=new_id("aud"),
            change_order_id=order.id,
            actor_id=actor,
            event_type=event_type,
            from_status=from_status.value if from_status is not None else None,
            to_status=to_status.value if to_status is not None else None,
            comment=comment,
            timestamp=order.updated_at,
            metadata={k: v for k, v in metadata.items() if v is not None},
        )

    def _commit(self, order: ChangeOrder, entry: AuditEntry) -> AuditEntry:
        return self.store.commit(order, entry)

    def _touch(self, order: ChangeOrder) -> None:
        order.version += 1
        order.updated_at = self._clock()

    def _validate_text(self, title: str | None, reason: str | None, description: str | None) -> None:
        s = self.settings
        if title is not None:
            stripped = title.strip()
            if not stripped:
                raise ValidationError("Title is required", field="title")
            if len(stripped) < s.title_min_length:
                raise ValidationError(
                    f"Title must be at least {s.title_min_length} characters", field="title"
                )
            if len(stripped) > s.title_max_length:
                raise ValidationError(
                    f"Title must be at most {s.title_max_length} characters", field="title"
                )
        if reason is not None and not reason.strip():
            raise ValidationError("Reason is required", field="reason")
        if description is not None and len(description.strip()) < s.description_min_length:
            raise ValidationError(
                f"Description must be at least {s.description_min_length} characters", field="description"
            )

    def _approvers(self, change_order_id: str, approver_ids: Sequence[str]) -> list[Approver]:
        seen: set[str] = set()
        approvers: list[Approver] = []
        for user_id in approver_ids:
            if not isinstance(user_id, str) or not user_id.strip():
                raise ValidationError("Approver ids must be non-empty strings", field="approver_ids")
            if user_id in seen:
                raise ValidationError(f"Duplicate approver: {user_id}", field="approver_ids")
            seen.add(user_id)
            approvers.append(Approver(id=new_id("apr"), change_order_id=change_order_id, user_id=user_id))
        return approvers

    def _affected_parts(self, change_order_id: str, part_ids: Sequence[str]) -> list[AffectedPart]:
        if not part_ids:
            return []
        if self.catalog is None:
            raise ValidationError("Affected parts require a part catalog", field="affected_part_ids")
        if len(set(part_ids)) != len(part_ids):
            raise ValidationError("Duplicate affected part", field="affected_part_ids")

        snapshots: list[AffectedPart] = []
        for part_id in part_ids:
            part = self.catalog.get_part(part_id)
            if part is None:
                raise NotFoundError("Part", part_id)
            snapshots.append(
                AffectedPart(
                    change_order_id=change_order_id,
                    part_id=part.id,
                    part_number=part.part_number,
                    name=part.name,
                    category=part.category,
                    status_snapshot=part.status,
                    revision_snapshot=part.current_revision,
                )
            )
        return snapshots

    @staticmethod
    def _context(order: ChangeOrder) -> dict[str, str]:
        return {
            "change_order_id": order.id,
            "type": order.type.value,
            "number": order.number,
            "title": order.title,
            "project_id": order.project_id,
        }

    def _publish(self, event_name: str, payload: Any) -> None:
        if self.bus.disposed:
            logger.warning("Dropping %s: event bus disposed", event_name)
            return
        self.bus.publish(event_name, payload)

    def _status_changed(
        self, order: ChangeOrder, from_status: ChangeOrderStatus, actor: str, comment: str | None = None
    ) -> None:
        logger.info("%s %s: %s -> %s by %s", order.display_number, order.id, from_status.value, order.status.value, actor)
        self._publish(
            CHANGE_ORDER_STATUS_CHANGED,
            StatusChanged(
                change_order_id=order.id,
                from_status=from_status.value,
                to_status=order.status.value,
                changed_by=actor,
                comment=comment,
            ),
        )

    # -------------------------------------------------------------------------
    # Lifecycle operations
    # -------------------------------------------------------------------------

    def create(self, data: ChangeOrderInput, requester_id: str) -> ChangeOrder:
        """Create a draft change order. Approvers may still be empty."""
        self._authorize(requester_id, ACTION_CREATE, None)
        if not data.project_id:
            raise ValidationError("Project is required", field="project_id")
        try:
            change_type = ChangeOrderType(data.type)
        except ValueError:
            raise ValidationError(f"Unknown change order type: {data.type!r}", field="type") from None
        try:
            priority = Priority(data.priority)
        except ValueError:
            raise ValidationError(f"Unknown priority: {data.priority!r}", field="priority") from None
        if not isinstance(data.title, str):
            raise ValidationError("Title is required", field="title")
        if not isinstance(data.reason, str):
            raise ValidationError("Reason is required", field="reason")
        if data.description is not None and not isinstance(data.description, str):
            raise ValidationError("Description must be text", field="description")
        self._validate_text(data.title, data.reason, data.description or "")

        change_order_id = new_id("co")
        approvers = self._approvers(change_order_id, data.approver_ids)
        affected = self._affected_parts(change_order_id, data.affected_part_ids)

        number = self.store.next_number(data.project_id, change_type)
        now = self._clock()
        order = ChangeOrder(
            id=change_order_id,
            type=change_type,
            number=str(number).zfill(self.settings.number_width),
            title=data.title.strip(),
            description=(data.description or "").strip(),
            reason=data.reason.strip(),
            priority=priority,
            project_id=data.project_id,
            created_by=requester_id,
            created_at=now,
            updated_at=now,
            approvers=approvers,
            affected_parts=affected,
        )
        self._commit(
            order,
            self._entry(order, requester_id, AUDIT_CREATED, None, ChangeOrderStatus.DRAFT, "Change order created"),
        )
        logger.info("created %s %s in project %s", order.display_number, order.id, order.project_id)
        self._publish(
            CHANGE_ORDER_CREATED,
            ChangeOrderCreated(
                change_order_id=order.id,
                project_id=order.project_id,
                type=order.type.value,
                number=order.number,
                title=order.title,
                requester_id=requester_id,
                approver_ids=tuple(order.approver_ids),
                affected_part_ids=tuple(order.affected_part_ids),
            ),
        )
        return order

    def update(
        self,
        change_order_id: str,
        *,
        actor: str = "system",
        title: str | None = None,
        description: str | None = None,
        reason: str | None = None,
        priority: Priority | str | None = None,
        approver_ids: Sequence[str] | None = None,
        affected_part_ids: Sequence[str] | None = None,
    ) -> ChangeOrder:
        """
        Edit a draft. Replacing the approver list resets every vote to pending.

        Returns the order unchanged (and writes nothing) when no field
        actually differs.
        """
        order = self._load(change_order_id)
        self._authorize(actor, ACTION_UPDATE, order)
        self._require_draft(order, "updated")
        self._validate_text(title, reason, description)

        changed: list[str] = []
        if title is not None and title.strip() != order.title:
            order.title = title.strip()
            changed.append("title")
        if description is not None and description.strip() != order.description:
            order.description = description.strip()
            changed.append("description")
        if reason is not None and reason.strip() != order.reason:
            order.reason = reason.strip()
            changed.append("reason")
        if priority is not None:
            try:
                new_priority = Priority(priority)
            except ValueError:
                raise ValidationError(f"Unknown priority: {priority!r}", field="priority") from None
            if new_priority is not order.priority:
                order.priority = new_priority
                changed.append("priority")
        if approver_ids is not None and list(approver_ids) != order.approver_ids:
            order.approvers = self._approvers(order.id, approver_ids)
            changed.append("approver_ids")
        if affected_part_ids is not None and list(affected_part_ids) != order.affected_part_ids:
            order.affected_parts = self._affected_parts(order.id, affected_part_ids)
            changed.append("affected_part_ids")

        if not changed:
            return order

        self._touch(order)
        self._commit(
            order,
            self._entry(
                order,
                actor,
                AUDIT_UPDATED,
                order.status,
                order.status,
                f"Updated {', '.join(changed)}",
                fields=changed,
            ),
        )
        logger.debug("updated %s fields=%s", order.id, changed)
        self._publish(
            CHANGE_ORDER_UPDATED,
            ChangeOrderUpdated(change_order_id=order.id, updated_by=actor, fields=tuple(changed)),
        )
        return order

    def delete(self, change_order_id: str, *, actor: str = "system") -> None:
        """Remove a draft. Its audit trail is kept."""
        order = self._load(change_order_id)
        self._authorize(actor, ACTION_DELETE, order)
        self._require_draft(order, "deleted")

        order.updated_at = self._clock()
        self.store.remove(
            order.id,
            self._entry(order, actor, AUDIT_DELETED, order.status, None, "Change order deleted"),
        )
        logger.info("deleted draft %s %s", order.display_number, order.id)
        self._publish(
            CHANGE_ORDER_DELETED,
            ChangeOrderDeleted(change_order_id=order.id, project_id=order.project_id, deleted_by=actor),
        )

    def submit(self, change_order_id: str, *, actor: str = "system") -> ChangeOrder:
        order = self._load(change_order_id)
        self._authorize(actor, ACTION_SUBMIT, order)
        self._guard(order, ChangeOrderStatus.SUBMITTED)
        if not order.approvers:
            raise MissingApproversError(
                f"Change order {order.id} needs at least one approver before submission",
                from_status=order.status.value,
                to_status=ChangeOrderStatus.SUBMITTED.value,
            )

        previous = order.status
        order.status = ChangeOrderStatus.SUBMITTED
        self._touch(order)
        self._commit(
            order,
            self._entry(order, actor, AUDIT_STATUS_CHANGED, previous, order.status, "Submitted for review"),
        )
        self._status_changed(order, previous, actor, "Submitted for review")
        self._publish(
            CHANGE_ORDER_SUBMITTED,
            ChangeOrderSubmitted(
                **self._context(order),
                submitted_by=actor,
                submitted_at=order.updated_at,
                approver_ids=tuple(order.approver_ids),
            ),
        )
        return order

    def accept_for_review(self, change_order_id: str, *, actor: str = "system") -> ChangeOrder:
        order = self._load(change_order_id)
        self._authorize(actor, ACTION_ACCEPT, order)
        self._guard(order, ChangeOrderStatus.IN_REVIEW)

        previous = order.status
        order.status = ChangeOrderStatus.IN_REVIEW
        self._touch(order)
        self._commit(
            order,
            self._entry(order, actor, AUDIT_STATUS_CHANGED, previous, order.status, "Accepted for review"),
        )
        self._status_changed(order, previous, actor, "Accepted for review")
        return order

    def review(
        self,
        change_order_id: str,
        approver_id: str,
        decision: ApprovalStatus | str,
        comment: str | None = None,
    ) -> ChangeOrder:
        """
        Record one approver's vote and apply the quorum outcome.

        A single rejection rejects the order; the last outstanding approval
        approves it. Repeating a vote already on record is a no-op.
        """
        order = self._load(change_order_id)
        self._authorize(approver_id, ACTION_REVIEW, order)
        if order.status is not ChangeOrderStatus.IN_REVIEW:
            raise InvalidTransitionError(
                f"Change order {order.id} is not in review (status={order.status.value})",
                from_status=order.status.value,
            )
        try:
            decision = ApprovalStatus(decision)
        except ValueError:
            raise ValidationError(f"Unknown decision: {decision!r}", field="decision") from None
        if decision is ApprovalStatus.PENDING:
            raise ValidationError("Decision must be approved or rejected", field="decision")

        quorum = ApproverQuorum(order.id, order.approvers)
        self._touch(order)
        if not quorum.vote(approver_id, decision, comment, at=order.updated_at):
            return self._load(change_order_id)

        outcome = quorum.aggregate()
        progress = quorum.progress()
        previous = order.status

        if outcome is ApprovalStatus.REJECTED:
            order.status = ChangeOrderStatus.REJECTED
            note = f"Rejected by {approver_id}" + (f": {comment}" if comment else "")
            entry = self._entry(
                order, approver_id, AUDIT_STATUS_CHANGED, previous, order.status, note,
                approver_id=approver_id, decision=decision.value,
            )
        elif outcome is ApprovalStatus.APPROVED:
            order.status = ChangeOrderStatus.APPROVED
            entry = self._entry(
                order, approver_id, AUDIT_STATUS_CHANGED, previous, order.status,
                "Approved by all required approvers",
                approver_id=approver_id, decision=decision.value, review_comment=comment,
            )
        else:
            entry = self._entry(
                order, approver_id, AUDIT_VOTE_RECORDED, previous, order.status,
                f"Partial approval ({progress.approved}/{progress.total})",
                approver_id=approver_id, decision=decision.value, review_comment=comment,
            )

        self._commit(order, entry)

        logger.debug("vote %s by %s on %s (%d/%d)", decision.value, approver_id, order.id, progress.approved, progress.total)
        self._publish(
            CHANGE_ORDER_VOTE_RECORDED,
            VoteRecorded(
                change_order_id=order.id,
                approver_id=approver_id,
                decision=decision.value,
                approved=progress.approved,
                total=progress.total,
                pending_approver_ids=tuple(quorum.pending_approvers()),
            ),
        )
        if order.status is ChangeOrderStatus.REJECTED:
            self._status_changed(order, previous, approver_id, entry.comment)
            self._publish(
                CHANGE_ORDER_REJECTED,
                ChangeOrderRejected(
                    **self._context(order),
                    rejecter_id=approver_id,
                    rejected_at=order.updated_at,
                    rejection_reason=comment,
                ),
            )
        elif order.status is ChangeOrderStatus.APPROVED:
            self._status_changed(order, previous, approver_id, entry.comment)
            self._publish(
                CHANGE_ORDER_APPROVED,
                ChangeOrderApproved(
                    **self._context(order),
                    approver_id=approver_id,
                    approved_at=order.updated_at,
                    approver_comment=comment,
                ),
            )
        return order

    def implement(
        self,
        change_order_id: str,
        *,
        actor: str = "system",
        revision_id: str | None = None,
    ) -> ChangeOrder:
        """
        Mark an approved change as implemented and allocate new revisions.

        Each affected part gets next_revision_code() of the revision it had
        when the change order was created. With a catalog configured, the
        BOM under every affected part must validate first: a cycle raises
        BomCycleError, any other structural problem ValidationError.
        """
        order = self._load(change_order_id)
        self._authorize(actor, ACTION_IMPLEMENT, order)
        self._guard(order, ChangeOrderStatus.IMPLEMENTED)

        if self.catalog is not None and order.affected_parts:
            analysis = self._analyze(order)
            if analysis.has_cycle:
                raise BomCycleError(
                    f"Cannot implement {order.id}: " + "; ".join(analysis.errors),
                )
            if not analysis.valid:
                raise ValidationError(
                    f"Cannot implement {order.id}: " + "; ".join(analysis.errors),
                    field="affected_parts",
                )

        revisions: dict[str, str] = {}
        for part in order.affected_parts:
            part.new_revision = next_revision_code(part.revision_snapshot)
            revisions[part.part_id] = part.new_revision

        previous = order.status
        order.status = ChangeOrderStatus.IMPLEMENTED
        self._touch(order)
        order.implemented_at = order.updated_at
        order.implemented_revision_id = revision_id
        self._commit(
            order,
            self._entry(
                order, actor, AUDIT_STATUS_CHANGED, previous, order.status, "Change implemented",
                revisions=revisions or None, implemented_revision_id=revision_id,
            ),
        )
        self._status_changed(order, previous, actor, "Change implemented")
        self._publish(
            CHANGE_ORDER_IMPLEMENTED,
            ChangeOrderImplemented(
                **self._context(order),
                implemented_by=actor,
                implemented_at=order.updated_at,
                implemented_revision_id=revision_id,
                revisions=dict(revisions),
            ),
        )
        return order

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, change_order_id: str) -> ChangeOrder:
        return self._load(change_order_id)

    def list_change_orders(
        self,
        project_id: str,
        *,
        status: ChangeOrderStatus | str | None = None,
        change_type: ChangeOrderType | str | None = None,
        requester_id: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ChangeOrder]:
        """Orders of one project, newest first, with optional filters and paging."""
        orders = self.store.list_for_project(project_id)
        if status is not None:
            wanted_status = ChangeOrderStatus(status)
            orders = [o for o in orders if o.status is wanted_status]
        if change_type is not None:
            wanted_type = ChangeOrderType(change_type)
            orders = [o for o in orders if o.type is wanted_type]
        if requester_id is not None:
            orders = [o for o in orders if o.created_by == requester_id]
        orders.sort(key=lambda o: (o.created_at, o.number), reverse=True)
        end = offset + limit if limit is not None else None
        return orders[offset:end]

    def audit_trail(self, change_order_id: str) -> list[AuditEntry]:
        """Ordered audit entries; still available after a draft was deleted."""
        return self.store.audit_trail(change_order_id)

    def approval_progress(self, change_order_id: str) -> ApprovalProgress:
        order = self._load(change_order_id)
        return ApproverQuorum(order.id, order.approvers).progress()

    def statistics(self, project_id: str) -> ProjectStatistics:
        stats = ProjectStatistics(project_id=project_id)
        for order in self.store.list_for_project(project_id):
            stats.total += 1
            stats.by_status[order.status.value] = stats.by_status.get(order.status.value, 0) + 1
            stats.by_type[order.type.value] = stats.by_type.get(order.type.value, 0) + 1
        return stats

    def _analyze(self, order: ChangeOrder) -> ImpactAnalysis:
        if self.catalog is None:
            raise ValidationError("Impact analysis requires a part catalog")
        return analyze_impact(
            order,
            self.catalog,
            max_depth=self.settings.bom_max_depth,
            related=self.store.list_for_project(order.project_id),
        )

    def impact_analysis(self, change_order_id: str) -> ImpactAnalysis:
        return self._analyze(self._load(change_order_id))


def replay_statuses(entries: Iterable[AuditEntry]) -> list[str]:
    """Status sequence reconstructed from an audit trail (draft first)."""
    statuses: list[str] = []
    for entry in sorted(entries, key=lambda e: e.sequence):
        if entry.to_status is not None and (not statuses or statuses[-1] != entry.to_status):
            statuses.append(entry.to_status)
    return statuses
