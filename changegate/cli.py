"""CLI entrypoint for changegate."""

import logging
import sys
from pathlib import Path

import click

from . import __version__
from .config import Settings, find_settings_file, load_settings
from .errors import ValidationError


@click.group()
@click.version_option(__version__, prog_name="changegate")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to changegate.toml (defaults to auto-detected changegate.toml / pyproject.toml)",
)
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """changegate - Engineering change order lifecycle tooling.

    Inspect revision codes, BOM structures, and change-order audit ledgers.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    if config_path is None:
        config_path = find_settings_file(Path.cwd())

    try:
        settings = load_settings(config_path) if config_path is not None else Settings()
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e

    ctx.obj["settings"] = settings


# -----------------------------------------------------------------------------
# Revision codes
# -----------------------------------------------------------------------------


@cli.group()
def revision() -> None:
    """Allocate, validate, and order revision codes."""
    pass


@revision.command("next")
@click.argument("current", required=False)
def revision_next(current: str | None) -> None:
    """Print the revision after CURRENT ("A" when omitted)."""
    from .commands.revision_cmd import run_revision_next

    sys.exit(run_revision_next(current))


@revision.command("prev")
@click.argument("current")
def revision_prev(current: str) -> None:
    """Print the revision before CURRENT."""
    from .commands.revision_cmd import run_revision_prev

    sys.exit(run_revision_prev(current))


@revision.command("check")
@click.argument("codes", nargs=-1, required=True)
def revision_check(codes: tuple[str, ...]) -> None:
    """Validate revision codes and show their ordinal values."""
    from .commands.revision_cmd import run_revision_check

    sys.exit(run_revision_check(codes))


@revision.command("sort")
@click.argument("codes", nargs=-1, required=True)
def revision_sort(codes: tuple[str, ...]) -> None:
    """Print CODES in revision order.

    Examples:

        changegate revision sort B AA Z A
    """
    from .commands.revision_cmd import run_revision_sort

    sys.exit(run_revision_sort(codes))


# -----------------------------------------------------------------------------
# BOM
# -----------------------------------------------------------------------------

_catalog_option = click.option(
    "--catalog",
    "catalog_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help='JSON file with {"parts": [...], "edges": [...]}',
)


def _max_depth(ctx: click.Context, max_depth: int | None) -> int:
    return max_depth if max_depth is not None else ctx.obj["settings"].bom_max_depth


@cli.group()
def bom() -> None:
    """Check BOM structures: cycles, missing parts, where-used."""
    pass


@bom.command("check")
@click.argument("root_id")
@_catalog_option
@click.option("--max-depth", type=int, default=None, help="Override [bom] max_depth from config")
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def bom_check(ctx: click.Context, root_id: str, catalog_path: Path, max_depth: int | None, output_json: bool) -> None:
    """Validate the BOM under ROOT_ID."""
    from .commands.bom_cmd import run_bom_check

    sys.exit(run_bom_check(catalog_path, root_id, max_depth=_max_depth(ctx, max_depth), output_json=output_json))


@bom.command("where-used")
@click.argument("part_id")
@_catalog_option
def bom_where_used(part_id: str, catalog_path: Path) -> None:
    """List the assemblies that use PART_ID directly."""
    from .commands.bom_cmd import run_bom_where_used

    sys.exit(run_bom_where_used(catalog_path, part_id))


@bom.command("tree")
@click.argument("root_id")
@_catalog_option
@click.option("--max-depth", type=int, default=None, help="Override [bom] max_depth from config")
@click.pass_context
def bom_tree(ctx: click.Context, root_id: str, catalog_path: Path, max_depth: int | None) -> None:
    """Show the expanded BOM under ROOT_ID."""
    from .commands.bom_cmd import run_bom_tree

    sys.exit(run_bom_tree(catalog_path, root_id, max_depth=_max_depth(ctx, max_depth)))


@bom.command("quantity")
@click.argument("root_id")
@click.argument("part_id")
@_catalog_option
@click.option("--max-depth", type=int, default=None, help="Override [bom] max_depth from config")
@click.pass_context
def bom_quantity(ctx: click.Context, root_id: str, part_id: str, catalog_path: Path, max_depth: int | None) -> None:
    """Total quantity of PART_ID needed for one ROOT_ID."""
    from .commands.bom_cmd import run_bom_quantity

    sys.exit(run_bom_quantity(catalog_path, root_id, part_id, max_depth=_max_depth(ctx, max_depth)))


# -----------------------------------------------------------------------------
# Audit ledger
# -----------------------------------------------------------------------------


def _ledger(ctx: click.Context, ledger_path: Path | None) -> Path:
    path = ledger_path or ctx.obj["settings"].ledger_path
    if path is None:
        raise click.UsageError("No ledger given. Pass --ledger or set [ledger] path in changegate.toml.")
    return path


@cli.group()
def audit() -> None:
    """Read change-order audit ledgers."""
    pass


@audit.command("show")
@click.argument("change_order_id")
@click.option("--ledger", "ledger_path", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--json", "output_json", is_flag=True, help="Output entries as JSON")
@click.pass_context
def audit_show(ctx: click.Context, change_order_id: str, ledger_path: Path | None, output_json: bool) -> None:
    """Show the audit trail of CHANGE_ORDER_ID."""
    from .commands.audit_cmd import run_audit_show

    sys.exit(run_audit_show(_ledger(ctx, ledger_path), change_order_id, output_json=output_json))


@audit.command("list")
@click.option("--ledger", "ledger_path", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.pass_context
def audit_list(ctx: click.Context, ledger_path: Path | None) -> None:
    """List change orders recorded in the ledger."""
    from .commands.audit_cmd import run_audit_list

    sys.exit(run_audit_list(_ledger(ctx, ledger_path)))


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()
