from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from relgate.core.config import CONFIG_FILE_NAME, Config, TargetConfig, load_config_or_default
from relgate.core.errors import ErrorCode
from relgate.core.result import Err, Ok, Result
from relgate.git.repository import Repository
from relgate.output.console import ConsoleProtocol, RichConsole
from relgate.release.classifier import TYPE_TOKENS
from relgate.release.coordinator import ReleaseCoordinator
from relgate.release.errors import ReleaseError
from relgate.release.events import OutboxEventSink
from relgate.release.git_source import GitHistorySource
from relgate.release.history import HistoryWalker
from relgate.release.model import ChangeType, ReleaseTarget
from relgate.release.review import FileReviewSurface
from relgate.release.semver import parse_version
from relgate.release.store import JsonReleaseStateStore

CONFIG_ENV_VAR = "RELGATE_CONFIG"


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    console: ConsoleProtocol
    store: JsonReleaseStateStore
    review: FileReviewSurface
    events: OutboxEventSink


def config_path() -> Path:
    """``--config`` (exported as RELGATE_CONFIG), else relgate.toml in cwd."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.cwd() / CONFIG_FILE_NAME


def build_context(*, console: ConsoleProtocol | None = None) -> CLIContext:
    path = config_path()
    config_result = load_config_or_default(path)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    config = config_result.value
    state = config.state_path
    return CLIContext(
        config=config,
        console=console or RichConsole(),
        store=JsonReleaseStateStore(state),
        review=FileReviewSurface(state),
        events=OutboxEventSink(state),
    )


def release_target(target: TargetConfig) -> Result[ReleaseTarget, ReleaseError]:
    initial = parse_version(target.initial_version)
    if initial is None:
        return Err(
            ReleaseError(
                kind="config_invalid",
                message=f"target {target.id}: invalid initial_version {target.initial_version!r}",
                hint="Use MAJOR.MINOR.PATCH, e.g. 0.1.0",
            )
        )
    return Ok(
        ReleaseTarget(
            id=target.id,
            head=target.head,
            tag_prefix=target.tag_prefix,
            initial_version=initial,
            path=target.path,
        )
    )


_HIDEABLE_TYPES = frozenset({ChangeType.CHORE, ChangeType.DOCS, ChangeType.OTHER})


def hidden_change_types(names: tuple[str, ...]) -> Result[frozenset[ChangeType], ReleaseError]:
    """Map ``changelog.hidden_types`` entries (``chore``, ``docs``...) to change types.

    Only types that land in the "other" changelog category can be hidden.
    """
    by_value = {t.value: t for t in ChangeType}
    hidden: set[ChangeType] = set()
    for name in names:
        key = name.strip().lower()
        change_type = by_value.get(key) or TYPE_TOKENS.get(key)
        if change_type is None:
            return Err(
                ReleaseError(
                    kind="config_invalid",
                    message=f"unknown change type in changelog.hidden_types: {name!r}",
                    hint="Known types: " + ", ".join(sorted(by_value)),
                )
            )
        if change_type not in _HIDEABLE_TYPES:
            return Err(
                ReleaseError(
                    kind="config_invalid",
                    message=f"changelog.hidden_types cannot hide releasable changes: {name!r}",
                    hint="Hideable types: "
                    + ", ".join(sorted(t.value for t in _HIDEABLE_TYPES)),
                )
            )
        hidden.add(change_type)
    return Ok(frozenset(hidden))


def build_coordinator(ctx: CLIContext, target_id: str) -> Result[ReleaseCoordinator, ReleaseError]:
    config = ctx.config
    target_config = config.target(target_id)
    if target_config is None:
        known = ", ".join(t.id for t in config.targets) or "(none)"
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"unknown target: {target_id}",
                hint=f"Configured targets: {known}",
            )
        )

    target = release_target(target_config)
    if isinstance(target, Err):
        return target
    hidden = hidden_change_types(config.changelog.hidden_types)
    if isinstance(hidden, Err):
        return hidden

    source = GitHistorySource(Repository(config.repo_path(target_config)), path=target_config.path)
    return Ok(
        ReleaseCoordinator(
            target=target.value,
            walker=HistoryWalker(source, source),
            store=ctx.store,
            review=ctx.review,
            events=ctx.events,
            console=ctx.console,
            tags=source,
            breaking_markers=config.changelog.breaking_markers,
            hidden_types=hidden.value,
            retry_attempts=config.engine.store_retry_attempts,
        )
    )
