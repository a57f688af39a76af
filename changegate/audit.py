"""
Append-only audit trail for change orders.

Entries are written once and never modified or deleted. Each change order
has its own sequence counter, starting at 1, so a trail can be replayed in
exactly the order its transitions were committed.

When constructed with a path the trail is backed by a JSON Lines file: one
sealed entry per line, the file only ever opened in append mode.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Iterator

from .models import AuditEntry, freeze
from .util import Clock, utc_now

logger = logging.getLogger(__name__)


class AuditTrail:
    """
    Append-only, per-change-order ordered log of AuditEntry records.

    INVARIANT: the only write operation is append().
    """

    def __init__(self, path: Path | None = None, *, clock: Clock = utc_now):
        """
        Initialize the trail.

        Args:
            path: Optional JSON Lines file. Existing lines are loaded on
                first use so sequences continue where they left off.
            clock: Source of entry timestamps (UTC).
        """
        self.path = path
        self._clock = clock

        # Lazy-loaded indexes
        self._entries: list[AuditEntry] = []
        self._by_change_order: dict[str, list[int]] = {}
        self._indexed = path is None

    def _ensure_indexed(self) -> None:
        if self._indexed:
            return
        for entry in self._read_file():
            self._index(replace(entry, metadata=freeze(entry.metadata)))
        self._indexed = True

    def _read_file(self) -> Iterator[AuditEntry]:
        if self.path is None or not self.path.exists():
            return
        with self.path.open("r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield AuditEntry.from_dict(json.loads(line))
                except (json.JSONDecodeError, KeyError, ValueError) as e:
                    raise ValueError(f"Corrupt audit ledger {self.path} at line {line_no}: {e}") from e

    def _index(self, entry: AuditEntry) -> None:
        self._by_change_order.setdefault(entry.change_order_id, []).append(len(self._entries))
        self._entries.append(entry)

    def next_sequence(self, change_order_id: str) -> int:
        self._ensure_indexed()
        return len(self._by_change_order.get(change_order_id, ())) + 1

    def append(self, entry: AuditEntry) -> AuditEntry:
        """
        Seal and record `entry`.

        Assigns the next sequence number for its change order and a UTC
        timestamp (unless the caller already stamped one), freezes a copy of
        its metadata, writes it, and returns the sealed entry. If the file
        write fails nothing is recorded in memory either.
        """
        self._ensure_indexed()
        sealed = replace(
            entry,
            sequence=self.next_sequence(entry.change_order_id),
            timestamp=entry.timestamp or self._clock(),
            metadata=freeze(entry.metadata),
        )

        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            line = json.dumps(sealed.to_dict(), separators=(",", ":"))
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")

        self._index(sealed)
        logger.debug(
            "audit %s #%d %s (%s -> %s)",
            sealed.change_order_id,
            sealed.sequence,
            sealed.event_type,
            sealed.from_status,
            sealed.to_status,
        )
        return sealed

    def list(self, change_order_id: str) -> list[AuditEntry]:
        """Entries for one change order, ordered by sequence ascending."""
        self._ensure_indexed()
        entries = [self._entries[i] for i in self._by_change_order.get(change_order_id, ())]
        return sorted(entries, key=lambda e: e.sequence)

    def change_order_ids(self) -> list[str]:
        self._ensure_indexed()
        return list(self._by_change_order)

    def count(self, change_order_id: str | None = None) -> int:
        self._ensure_indexed()
        if change_order_id is None:
            return len(self._entries)
        return len(self._by_change_order.get(change_order_id, ()))
