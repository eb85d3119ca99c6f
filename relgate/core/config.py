"""Typed configuration loading.

``relgate.toml`` describes where state lives, how long a run may take and
which release targets exist. It is parsed into frozen dataclasses; anything
structurally wrong is reported as a ``ConfigError`` rather than raised.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_obj_list,
    as_str_dict,
    get_float,
    get_int,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "ChangelogConfig",
    "Config",
    "ConfigError",
    "EngineConfig",
    "TargetConfig",
    "default_config",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILE_NAME = "relgate.toml"

DEFAULT_STATE_DIR = ".relgate"
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_STORE_RETRY_ATTEMPTS = 3
DEFAULT_BREAKING_MARKERS = ("BREAKING CHANGE", "BREAKING-CHANGE")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class EngineConfig:
    state_dir: str = DEFAULT_STATE_DIR
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    store_retry_attempts: int = DEFAULT_STORE_RETRY_ATTEMPTS


@dataclass(frozen=True, slots=True)
class ChangelogConfig:
    """Changelog rendering options.

    Attributes:
        hidden_types: Change types left out of the "other" category.
        breaking_markers: Footer tokens that flag a breaking change in a body.
    """

    hidden_types: tuple[str, ...] = ()
    breaking_markers: tuple[str, ...] = DEFAULT_BREAKING_MARKERS


@dataclass(frozen=True, slots=True)
class TargetConfig:
    """A releasable unit.

    Attributes:
        id: Target id (usually the package name)
        repo: Repository path, relative to the config file
        head: Ref treated as the current head on each run
        tag_prefix: Prefix of release tags (``v`` for ``v1.2.3``)
        initial_version: Version assumed when nothing was ever released
        path: Only commits touching this sub-path count (monorepos)
    """

    id: str
    repo: str = "."
    head: str = "HEAD"
    tag_prefix: str = "v"
    initial_version: str = "0.0.0"
    path: str | None = None


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    root: Path
    engine: EngineConfig = field(default_factory=EngineConfig)
    changelog: ChangelogConfig = field(default_factory=ChangelogConfig)
    targets: tuple[TargetConfig, ...] = ()

    @property
    def state_path(self) -> Path:
        return (self.root / self.engine.state_dir).resolve()

    def repo_path(self, target: TargetConfig) -> Path:
        return (self.root / target.repo).resolve()

    def target(self, target_id: str) -> TargetConfig | None:
        for t in self.targets:
            if t.id == target_id:
                return t
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, root: Path) -> Config:
        """Create Config from parsed TOML.

        Raises:
            ValueError: If the targets table is malformed.
        """
        engine: StrDict = get_table(data, "engine") or {}
        changelog: StrDict = get_table(data, "changelog") or {}

        targets: list[TargetConfig] = []
        seen: set[str] = set()
        for item in as_obj_list(data.get("targets")) or []:
            t = as_str_dict(item)
            if t is None:
                raise ValueError("each [[targets]] entry must be a table")
            target_id = get_str(t, "id")
            if target_id is None:
                raise ValueError("target is missing 'id'")
            if target_id in seen:
                raise ValueError(f"duplicate target id: {target_id}")
            seen.add(target_id)
            targets.append(
                TargetConfig(
                    id=target_id,
                    repo=get_str(t, "repo") or ".",
                    head=get_str(t, "head") or "HEAD",
                    tag_prefix=t["tag_prefix"] if isinstance(t.get("tag_prefix"), str) else "v",
                    initial_version=get_str(t, "initial_version") or "0.0.0",
                    path=get_str(t, "path"),
                )
            )

        retries = get_int(engine, "store_retry_attempts")
        if retries is not None and retries < 1:
            raise ValueError("engine.store_retry_attempts must be >= 1")
        timeout = get_float(engine, "timeout")
        if timeout is not None and timeout <= 0:
            raise ValueError("engine.timeout must be > 0")

        markers = get_str_list(changelog, "breaking_markers")

        return cls(
            root=root,
            engine=EngineConfig(
                state_dir=get_str(engine, "state_dir") or DEFAULT_STATE_DIR,
                timeout=timeout or DEFAULT_TIMEOUT_SECONDS,
                store_retry_attempts=retries or DEFAULT_STORE_RETRY_ATTEMPTS,
            ),
            changelog=ChangelogConfig(
                hidden_types=tuple(get_str_list(changelog, "hidden_types") or ()),
                breaking_markers=tuple(markers) if markers else DEFAULT_BREAKING_MARKERS,
            ),
            targets=tuple(targets),
        )


def default_config(root: Path) -> Config:
    """Config used when no relgate.toml exists: one target named after root."""
    name = root.resolve().name or "default"
    return Config(root=root, targets=(TargetConfig(id=name),))


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and validate configuration from a TOML file.

    Args:
        path: Path to relgate.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        config = Config.from_dict(result.value, root=path.parent)
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))

    if not config.targets:
        config = replace(config, targets=default_config(path.parent).targets)
    return Ok(config)


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Load config if the file exists, else fall back to defaults.

    A file that exists but is invalid is still an error.
    """
    if not path.exists():
        return Ok(default_config(path.parent))
    return load_config(path)
