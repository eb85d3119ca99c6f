"""Tests for relgate.core.config module."""

from __future__ import annotations

from pathlib import Path

import pytest

from relgate.core.config import (
    ChangelogConfig,
    Config,
    EngineConfig,
    TargetConfig,
    default_config,
    load_config,
    load_config_or_default,
)
from relgate.core.result import Err, Ok


class TestDefaults:
    def test_engine_defaults(self) -> None:
        engine = EngineConfig()
        assert engine.state_dir == ".relgate"
        assert engine.timeout == 60.0
        assert engine.store_retry_attempts == 3

    def test_changelog_defaults(self) -> None:
        changelog = ChangelogConfig()
        assert changelog.hidden_types == ()
        assert changelog.breaking_markers == ("BREAKING CHANGE", "BREAKING-CHANGE")

    def test_target_defaults(self) -> None:
        target = TargetConfig(id="pkg")
        assert target.repo == "."
        assert target.head == "HEAD"
        assert target.tag_prefix == "v"
        assert target.initial_version == "0.0.0"
        assert target.path is None

    def test_frozen(self) -> None:
        target = TargetConfig(id="pkg")
        with pytest.raises(AttributeError):
            target.id = "other"  # type: ignore[misc]

    def test_default_config_names_target_after_root(self, tmp_path: Path) -> None:
        root = tmp_path / "my-lib"
        root.mkdir()
        config = default_config(root)
        assert [t.id for t in config.targets] == ["my-lib"]


class TestFromDict:
    def test_full(self, tmp_path: Path) -> None:
        data: dict[str, object] = {
            "engine": {"state_dir": "state", "timeout": 5, "store_retry_attempts": 2},
            "changelog": {"hidden_types": ["chore"], "breaking_markers": ["BREAKING"]},
            "targets": [
                {"id": "a", "path": "crates/a", "tag_prefix": "a-v"},
                {"id": "b", "repo": "../b", "initial_version": "1.0.0"},
            ],
        }
        config = Config.from_dict(data, root=tmp_path)

        assert config.engine == EngineConfig(
            state_dir="state", timeout=5.0, store_retry_attempts=2
        )
        assert config.changelog.hidden_types == ("chore",)
        assert config.changelog.breaking_markers == ("BREAKING",)
        assert config.target("a") == TargetConfig(id="a", path="crates/a", tag_prefix="a-v")
        b = config.target("b")
        assert b is not None
        assert config.repo_path(b) == (tmp_path / "../b").resolve()
        assert config.state_path == (tmp_path / "state").resolve()

    def test_empty_tag_prefix_allowed(self, tmp_path: Path) -> None:
        config = Config.from_dict({"targets": [{"id": "a", "tag_prefix": ""}]}, root=tmp_path)
        assert config.targets[0].tag_prefix == ""

    def test_unknown_target(self, tmp_path: Path) -> None:
        assert Config.from_dict({}, root=tmp_path).target("nope") is None

    def test_duplicate_ids_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="duplicate target id"):
            Config.from_dict({"targets": [{"id": "a"}, {"id": "a"}]}, root=tmp_path)

    def test_missing_id_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="missing 'id'"):
            Config.from_dict({"targets": [{"repo": "."}]}, root=tmp_path)

    def test_bad_retry_count_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="store_retry_attempts"):
            Config.from_dict({"engine": {"store_retry_attempts": 0}}, root=tmp_path)


class TestLoadConfig:
    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "relgate.toml"
        path.write_text(
            '[engine]\ntimeout = 12.5\n\n[[targets]]\nid = "lib"\nhead = "main"\n',
            encoding="utf-8",
        )
        result = load_config(path)
        assert isinstance(result, Ok)
        assert result.value.engine.timeout == 12.5
        assert result.value.targets == (TargetConfig(id="lib", head="main"),)
        assert result.value.root == tmp_path

    def test_no_targets_falls_back_to_default(self, tmp_path: Path) -> None:
        path = tmp_path / "relgate.toml"
        path.write_text("[engine]\n", encoding="utf-8")
        result = load_config(path)
        assert isinstance(result, Ok)
        assert [t.id for t in result.value.targets] == [tmp_path.name]

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "relgate.toml"
        path.write_text("[engine\n", encoding="utf-8")
        result = load_config(path)
        assert isinstance(result, Err)
        assert "Invalid TOML" in result.error.message
        assert result.error.path == path

    def test_invalid_structure(self, tmp_path: Path) -> None:
        path = tmp_path / "relgate.toml"
        path.write_text('[[targets]]\nid = "a"\n\n[[targets]]\nid = "a"\n', encoding="utf-8")
        result = load_config(path)
        assert isinstance(result, Err)
        assert "duplicate target id" in result.error.message

    def test_missing_file(self, tmp_path: Path) -> None:
        result = load_config(tmp_path / "relgate.toml")
        assert isinstance(result, Err)
        assert "not found" in result.error.message

    def test_or_default_missing_file(self, tmp_path: Path) -> None:
        result = load_config_or_default(tmp_path / "relgate.toml")
        assert isinstance(result, Ok)
        assert result.value == default_config(tmp_path)

    def test_or_default_keeps_errors(self, tmp_path: Path) -> None:
        path = tmp_path / "relgate.toml"
        path.write_text("not toml = = =", encoding="utf-8")
        assert isinstance(load_config_or_default(path), Err)
