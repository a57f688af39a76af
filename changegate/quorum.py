"""
Unanimous approver quorum.

A change order is approved only when every listed approver approves, and
is rejected as soon as any one of them rejects. Votes are recorded in
place on the Approver objects the quorum was built from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from .errors import UnknownApproverError
from .models import ApprovalStatus, Approver
from .util import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovalProgress:
    total: int
    approved: int
    rejected: int
    pending: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "approved": self.approved,
            "rejected": self.rejected,
            "pending": self.pending,
        }


class ApproverQuorum:
    """Vote bookkeeping for one change order's ordered approver list."""

    def __init__(self, change_order_id: str, approvers: Sequence[Approver]):
        self.change_order_id = change_order_id
        self.approvers = list(approvers)

    def find(self, approver_id: str) -> Approver:
        for approver in self.approvers:
            if approver.user_id == approver_id:
                return approver
        raise UnknownApproverError(self.change_order_id, approver_id)

    def vote(
        self,
        approver_id: str,
        decision: ApprovalStatus | str,
        comment: str | None = None,
        *,
        at: datetime | None = None,
    ) -> bool:
        """
        Record `approver_id`'s decision.

        Returns False when the approver already holds that decision (the
        vote is an idempotent repeat and nothing is touched), True when the
        stored vote changed. Raises UnknownApproverError for a user that is
        not on the list and ValueError for a decision other than
        approved/rejected.
        """
        decision = ApprovalStatus(decision)
        if decision is ApprovalStatus.PENDING:
            raise ValueError("A vote must be approved or rejected")

        approver = self.find(approver_id)
        if approver.status is decision:
            logger.debug("repeat %s vote by %s on %s ignored", decision.value, approver_id, self.change_order_id)
            return False

        approver.status = decision
        approver.comment = comment
        approver.reviewed_at = at or utc_now()
        return True

    def aggregate(self) -> ApprovalStatus:
        """rejected if any approver rejected; approved if all approved; else pending."""
        statuses = [a.status for a in self.approvers]
        if ApprovalStatus.REJECTED in statuses:
            return ApprovalStatus.REJECTED
        if statuses and all(s is ApprovalStatus.APPROVED for s in statuses):
            return ApprovalStatus.APPROVED
        return ApprovalStatus.PENDING

    def progress(self) -> ApprovalProgress:
        approved = sum(1 for a in self.approvers if a.status is ApprovalStatus.APPROVED)
        rejected = sum(1 for a in self.approvers if a.status is ApprovalStatus.REJECTED)
        total = len(self.approvers)
        return ApprovalProgress(total=total, approved=approved, rejected=rejected, pending=total - approved - rejected)

    def pending_approvers(self) -> list[str]:
        return [a.user_id for a in self.approvers if a.status is ApprovalStatus.PENDING]
