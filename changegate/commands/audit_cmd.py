"""Audit ledger CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..audit import AuditTrail


def _trail(ledger_path: Path) -> AuditTrail | None:
    if not ledger_path.exists():
        Console(stderr=True).print(f"Audit ledger not found: {ledger_path}", style="bold red")
        return None
    return AuditTrail(ledger_path)


def run_audit_show(ledger_path: Path, change_order_id: str, *, output_json: bool = False) -> int:
    trail = _trail(ledger_path)
    if trail is None:
        return 2

    try:
        entries = trail.list(change_order_id)
    except ValueError as e:
        Console(stderr=True).print(str(e), style="bold red")
        return 2
    if not entries:
        Console(stderr=True).print(f"No audit entries for {change_order_id}", style="bold red")
        return 1

    if output_json:
        print(json.dumps([e.to_dict() for e in entries], indent=2, sort_keys=True))
        return 0

    table = Table(title=f"Audit trail: {change_order_id}")
    table.add_column("#", justify="right")
    table.add_column("timestamp", style="dim")
    table.add_column("actor", style="magenta")
    table.add_column("event")
    table.add_column("transition")
    table.add_column("comment")
    for entry in entries:
        transition = f"{entry.from_status or '-'} -> {entry.to_status or '-'}"
        table.add_row(
            str(entry.sequence),
            entry.timestamp.isoformat() if entry.timestamp else "",
            entry.actor_id,
            entry.event_type,
            transition,
            entry.comment or "",
        )
    Console().print(table)
    return 0


def run_audit_list(ledger_path: Path) -> int:
    """One row per change order found in the ledger."""
    trail = _trail(ledger_path)
    if trail is None:
        return 2

    try:
        ids = trail.change_order_ids()
    except ValueError as e:
        Console(stderr=True).print(str(e), style="bold red")
        return 2

    table = Table(title="Audited change orders")
    table.add_column("change_order_id", style="cyan", no_wrap=True)
    table.add_column("entries", justify="right")
    table.add_column("last status")
    for change_order_id in ids:
        entries = trail.list(change_order_id)
        last = entries[-1]
        table.add_row(change_order_id, str(len(entries)), last.to_status or last.event_type)
    Console().print(table)
    return 0
