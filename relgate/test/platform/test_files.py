from __future__ import annotations

import os
from pathlib import Path

import pytest

from relgate.platform.files import atomic_write_text, safe_file_name


def test_atomic_write_creates_parents(tmp_path: Path) -> None:
    path = tmp_path / "a" / "b" / "state.json"
    atomic_write_text(path, "{}\n")
    assert path.read_text(encoding="utf-8") == "{}\n"


def test_atomic_write_replaces_and_leaves_no_temp_files(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    atomic_write_text(path, "old")
    atomic_write_text(path, "new")
    assert path.read_text(encoding="utf-8") == "new"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["state.json"]


def test_atomic_write_failure_keeps_previous_content(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "state.json"
    atomic_write_text(path, "old")

    def boom(src: object, dst: object) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", boom)
    with pytest.raises(OSError, match="disk full"):
        atomic_write_text(path, "new")

    assert path.read_text(encoding="utf-8") == "old"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["state.json"]


def test_safe_file_name_keeps_simple_keys() -> None:
    assert safe_file_name("lazy-pinned") == "lazy-pinned"
    assert safe_file_name("pkg_1.2") == "pkg_1.2"


def test_safe_file_name_distinguishes_sanitized_keys() -> None:
    a = safe_file_name("@scope/pkg")
    b = safe_file_name("@scope:pkg")
    assert a.startswith("_scope_pkg-")
    assert b.startswith("_scope_pkg-")
    assert a != b
    assert "/" not in a


def test_safe_file_name_never_hidden_or_empty() -> None:
    assert not safe_file_name("..").startswith(".")
    assert safe_file_name("") != ""
