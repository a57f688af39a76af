"""Tests for TOML settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from changegate.config import Settings, find_settings_file, load_settings
from changegate.errors import ValidationError


def test_defaults() -> None:
    s = Settings()
    assert s.bom_max_depth == 20
    assert s.title_max_length == 500
    assert s.ledger_path is None


def test_load_standalone_file(tmp_path: Path) -> None:
    path = tmp_path / "changegate.toml"
    path.write_text(
        "\n".join(
            [
                "[bom]",
                "max_depth = 7",
                "",
                "[change_order]",
                "title_min_length = 5",
                "number_width = 4",
                "",
                "[ledger]",
                'path = "ledger/audit.jsonl"',
            ]
        ),
        encoding="utf-8",
    )
    s = load_settings(path)
    assert s.bom_max_depth == 7
    assert s.title_min_length == 5
    assert s.number_width == 4
    assert s.ledger_path == tmp_path / "ledger" / "audit.jsonl"


def test_load_from_pyproject(tmp_path: Path) -> None:
    path = tmp_path / "pyproject.toml"
    path.write_text('[project]\nname = "x"\n\n[tool.changegate.bom]\nmax_depth = 3\n', encoding="utf-8")
    assert load_settings(path).bom_max_depth == 3


@pytest.mark.parametrize(
    "body",
    [
        "[bom]\nmax_depth = 0\n",
        '[bom]\nmax_depth = "deep"\n',
        "[change_order]\ntitle_min_length = 10\ntitle_max_length = 5\n",
        '[ledger]\npath = ""\n',
        "[bom\n",
    ],
)
def test_invalid_settings(tmp_path: Path, body: str) -> None:
    path = tmp_path / "changegate.toml"
    path.write_text(body, encoding="utf-8")
    with pytest.raises(ValidationError):
        load_settings(path)


def test_find_settings_file_walks_up(tmp_path: Path) -> None:
    (tmp_path / "changegate.toml").write_text("[bom]\nmax_depth = 4\n", encoding="utf-8")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    assert find_settings_file(nested) == (tmp_path / "changegate.toml").resolve()


def test_find_settings_file_skips_unrelated_pyproject(tmp_path: Path) -> None:
    (tmp_path / "changegate.toml").write_text("[bom]\nmax_depth = 4\n", encoding="utf-8")
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "pyproject.toml").write_text('[project]\nname = "x"\n', encoding="utf-8")
    assert find_settings_file(sub) == (tmp_path / "changegate.toml").resolve()


def test_find_settings_file_uses_pyproject_tool_table(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text("[tool.changegate.bom]\nmax_depth = 2\n", encoding="utf-8")
    assert find_settings_file(tmp_path) == (tmp_path / "pyproject.toml").resolve()
