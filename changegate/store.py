"""
Persistence adapter for change orders.

The state machine issues read and write intents through ChangeOrderStore.
A commit writes the new order state and its audit entry as one unit: an
adapter must either record both or neither.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from .audit import AuditTrail
from .errors import ConflictError, NotFoundError
from .models import AuditEntry, ChangeOrder, ChangeOrderType

logger = logging.getLogger(__name__)


@runtime_checkable
class ChangeOrderStore(Protocol):
    def get(self, change_order_id: str) -> ChangeOrder | None:
        ...

    def list_for_project(self, project_id: str) -> list[ChangeOrder]:
        ...

    def next_number(self, project_id: str, change_type: ChangeOrderType) -> int:
        ...

    def commit(self, order: ChangeOrder, entry: AuditEntry) -> AuditEntry:
        """Persist `order` together with `entry`; returns the sealed entry."""
        ...

    def remove(self, change_order_id: str, entry: AuditEntry) -> AuditEntry:
        ...

    def audit_trail(self, change_order_id: str) -> list[AuditEntry]:
        ...


class InMemoryChangeOrderStore:
    """
    Reference ChangeOrderStore keeping orders in a dict.

    Orders are deep-copied on the way in and out. Writes use an optimistic
    version check: a committed order must carry the stored version + 1
    (or version 1 for a new order).
    """

    def __init__(self, audit: AuditTrail | None = None):
        self.audit = audit if audit is not None else AuditTrail()
        self._orders: dict[str, ChangeOrder] = {}
        self._counters: dict[tuple[str, ChangeOrderType], int] = {}

    def get(self, change_order_id: str) -> ChangeOrder | None:
        order = self._orders.get(change_order_id)
        return order.clone() if order is not None else None

    def list_for_project(self, project_id: str) -> list[ChangeOrder]:
        return [o.clone() for o in self._orders.values() if o.project_id == project_id]

    def next_number(self, project_id: str, change_type: ChangeOrderType) -> int:
        """Peek the next sequential number; it is consumed by the first commit."""
        return self._counters.get((project_id, change_type), 0) + 1

    def _check_version(self, order: ChangeOrder) -> None:
        current = self._orders.get(order.id)
        expected = 1 if current is None else current.version + 1
        if order.version != expected:
            raise ConflictError(
                f"Change order {order.id} was modified concurrently "
                f"(expected version {expected}, got {order.version})"
            )

    def commit(self, order: ChangeOrder, entry: AuditEntry) -> AuditEntry:
        self._check_version(order)
        # The ledger append is the only step that can fail; do it first
        sealed = self.audit.append(entry)
        if order.id not in self._orders:
            key = (order.project_id, order.type)
            self._counters[key] = max(self._counters.get(key, 0), int(order.number))
        self._orders[order.id] = order.clone()
        return sealed

    def remove(self, change_order_id: str, entry: AuditEntry) -> AuditEntry:
        if change_order_id not in self._orders:
            raise NotFoundError("Change order", change_order_id)
        sealed = self.audit.append(entry)
        del self._orders[change_order_id]
        logger.debug("removed change order %s", change_order_id)
        return sealed

    def audit_trail(self, change_order_id: str) -> list[AuditEntry]:
        return self.audit.list(change_order_id)
