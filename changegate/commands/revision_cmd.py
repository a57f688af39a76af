"""Revision code CLI commands."""

from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.table import Table

from ..errors import InvalidRevisionCodeError
from ..revision import (
    next_revision_code,
    previous_revision_code,
    revision_index,
    sort_revision_codes,
    validate_revision_code,
)


def run_revision_next(current: str | None) -> int:
    console = Console()
    try:
        console.print(next_revision_code(current))
    except InvalidRevisionCodeError as e:
        Console(stderr=True).print(str(e), style="bold red")
        return 1
    return 0


def run_revision_prev(current: str) -> int:
    console = Console()
    try:
        previous = previous_revision_code(current)
    except InvalidRevisionCodeError as e:
        Console(stderr=True).print(str(e), style="bold red")
        return 1
    if previous is None:
        console.print(f"{current} is the first revision", style="dim")
        return 0
    console.print(previous)
    return 0


def run_revision_check(codes: Sequence[str]) -> int:
    """Table of codes with their ordinal; exit 1 if any code is invalid."""
    console = Console()
    table = Table(title="Revision codes")
    table.add_column("code", style="cyan")
    table.add_column("valid")
    table.add_column("index", justify="right")

    invalid = 0
    for code in codes:
        if validate_revision_code(code):
            table.add_row(code, "[green]yes[/green]", str(revision_index(code)))
        else:
            invalid += 1
            table.add_row(code, "[red]no[/red]", "")

    console.print(table)
    return 1 if invalid else 0


def run_revision_sort(codes: Sequence[str]) -> int:
    try:
        ordered = sort_revision_codes(codes)
    except InvalidRevisionCodeError as e:
        Console(stderr=True).print(str(e), style="bold red")
        return 1
    Console().print(" ".join(ordered))
    return 0
