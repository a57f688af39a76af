"""BOM inspection CLI commands, operating on a JSON catalog file."""

from __future__ import annotations

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..bom import build_bom_tree, calculate_total_quantity, find_where_used, flatten_bom_tree, validate_bom_tree
from ..catalog import InMemoryPartCatalog
from ..errors import ChangeGateError


def _load(catalog_path: Path) -> InMemoryPartCatalog | None:
    try:
        return InMemoryPartCatalog.load_json(catalog_path)
    except (OSError, ChangeGateError) as e:
        Console(stderr=True).print(f"Cannot load catalog: {e}", style="bold red")
        return None


def run_bom_check(catalog_path: Path, root_id: str, *, max_depth: int, output_json: bool = False) -> int:
    """Validate the BOM under `root_id`. Exit 1 when any problem is found."""
    catalog = _load(catalog_path)
    if catalog is None:
        return 2

    result = validate_bom_tree(root_id, catalog.parts_by_id(), catalog.edges(), max_depth)
    if output_json:
        print(json.dumps(result.to_dict(), indent=2, sort_keys=True))
        return 0 if result.valid else 1

    console = Console()
    if result.valid:
        console.print(f"BOM under {root_id} is valid", style="bold green")
        return 0

    console.print(f"BOM under {root_id}: {len(result.errors)} problem(s)", style="bold red")
    for error in result.errors:
        console.print(f"  - {error}")
    return 1


def run_bom_where_used(catalog_path: Path, part_id: str) -> int:
    catalog = _load(catalog_path)
    if catalog is None:
        return 2

    parents = find_where_used(part_id, catalog.edges())
    console = Console()
    if not parents:
        console.print(f"{part_id} is not used in any assembly", style="dim")
        return 0

    parts = catalog.parts_by_id()
    table = Table(title=f"Where used: {part_id}")
    table.add_column("parent_id", style="cyan", no_wrap=True)
    table.add_column("part_number")
    table.add_column("name")
    for parent_id in parents:
        part = parts.get(parent_id)
        table.add_row(parent_id, part.part_number if part else "?", part.name if part else "")
    console.print(table)
    return 0


def run_bom_tree(catalog_path: Path, root_id: str, *, max_depth: int) -> int:
    catalog = _load(catalog_path)
    if catalog is None:
        return 2

    try:
        tree = build_bom_tree(root_id, catalog.parts_by_id(), catalog.edges(), max_depth)
    except ChangeGateError as e:
        Console(stderr=True).print(str(e), style="bold red")
        return 1

    table = Table(title=f"BOM: {tree.part_number}")
    table.add_column("level", justify="right")
    table.add_column("part_number", style="cyan", no_wrap=True)
    table.add_column("name")
    table.add_column("qty", justify="right")
    table.add_column("unit")
    for item in flatten_bom_tree(tree):
        table.add_row(str(item.level), "  " * item.level + item.part_number, item.name, item.quantity, item.unit)
    Console().print(table)
    return 0


def run_bom_quantity(catalog_path: Path, root_id: str, part_id: str, *, max_depth: int) -> int:
    catalog = _load(catalog_path)
    if catalog is None:
        return 2

    try:
        tree = build_bom_tree(root_id, catalog.parts_by_id(), catalog.edges(), max_depth)
        total = calculate_total_quantity(tree, part_id)
    except ChangeGateError as e:
        Console(stderr=True).print(str(e), style="bold red")
        return 1

    Console().print(f"{part_id} per {root_id}: {total}")
    return 0
