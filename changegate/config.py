"""
Settings loaded from TOML.

Either a standalone changegate.toml with top-level tables, or a
pyproject.toml carrying the same tables under [tool.changegate]:

    [bom]
    max_depth = 20

    [change_order]
    title_min_length = 1
    title_max_length = 500
    description_min_length = 0
    number_width = 3

    [ledger]
    path = ".changegate/audit.jsonl"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ValidationError

CONFIG_FILENAME = "changegate.toml"


@dataclass(frozen=True)
class Settings:
    bom_max_depth: int = 20
    title_min_length: int = 1
    title_max_length: int = 500
    description_min_length: int = 0
    number_width: int = 3
    ledger_path: Path | None = None

    def __post_init__(self) -> None:
        if self.bom_max_depth < 1:
            raise ValidationError("must be a positive integer", field="bom.max_depth")
        if self.title_min_length < 1:
            raise ValidationError("must be at least 1", field="change_order.title_min_length")
        if self.title_max_length < self.title_min_length:
            raise ValidationError(
                "must not be smaller than title_min_length", field="change_order.title_max_length"
            )
        if self.description_min_length < 0:
            raise ValidationError("must not be negative", field="change_order.description_min_length")
        if self.number_width < 1:
            raise ValidationError("must be a positive integer", field="change_order.number_width")


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _int(table: dict[str, Any], key: str, default: int, field: str) -> int:
    value = table.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"must be an integer (got {value!r})", field=field)
    return value


def settings_from_dict(data: dict[str, Any], *, base_dir: Path | None = None) -> Settings:
    """Build Settings from parsed TOML tables. Relative ledger paths resolve against base_dir."""
    defaults = Settings()
    bom = _coerce_dict(data.get("bom"))
    change_order = _coerce_dict(data.get("change_order"))
    ledger = _coerce_dict(data.get("ledger"))

    ledger_path: Path | None = None
    raw_path = ledger.get("path")
    if raw_path is not None:
        if not isinstance(raw_path, str) or not raw_path.strip():
            raise ValidationError("must be a non-empty string", field="ledger.path")
        ledger_path = Path(raw_path.strip())
        if base_dir is not None and not ledger_path.is_absolute():
            ledger_path = base_dir / ledger_path

    return Settings(
        bom_max_depth=_int(bom, "max_depth", defaults.bom_max_depth, "bom.max_depth"),
        title_min_length=_int(
            change_order, "title_min_length", defaults.title_min_length, "change_order.title_min_length"
        ),
        title_max_length=_int(
            change_order, "title_max_length", defaults.title_max_length, "change_order.title_max_length"
        ),
        description_min_length=_int(
            change_order,
            "description_min_length",
            defaults.description_min_length,
            "change_order.description_min_length",
        ),
        number_width=_int(change_order, "number_width", defaults.number_width, "change_order.number_width"),
        ledger_path=ledger_path,
    )


def load_settings(path: Path) -> Settings:
    """
    Load Settings from a TOML file.

    A file named pyproject.toml is read from its [tool.changegate] table;
    anything else is read from the top level.
    """
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ValidationError(f"Invalid TOML in {path}: {e}") from e

    if path.name == "pyproject.toml":
        data = _coerce_dict(_coerce_dict(data.get("tool")).get("changegate"))
    return settings_from_dict(data, base_dir=path.parent)


def find_settings_file(start: Path) -> Path | None:
    """Find changegate.toml (or a pyproject.toml with [tool.changegate]) walking up from `start`."""
    cur = start.resolve()
    for p in (cur, *cur.parents):
        candidate = p / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        pyproject = p / "pyproject.toml"
        if pyproject.is_file():
            try:
                data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
            except tomllib.TOMLDecodeError:
                continue
            if "changegate" in _coerce_dict(data.get("tool")):
                return pyproject
    return None
