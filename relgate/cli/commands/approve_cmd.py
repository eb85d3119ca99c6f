from __future__ import annotations

import os
from pathlib import Path

import typer

from relgate.cli.commands._helpers import fail, unwrap_or_exit
from relgate.cli.context import CLIContext, build_context, build_coordinator
from relgate.core.result import Err
from relgate.output.console import Style
from relgate.release.model import ReleaseCreated
from relgate.release.outputs import write_github_outputs


def _github_output_path(explicit: Path | None) -> Path | None:
    if explicit is not None:
        return explicit
    env = os.environ.get("GITHUB_OUTPUT")
    return Path(env) if env else None


def _finish(
    ctx: CLIContext, target: str, event: ReleaseCreated | None, output: Path | None
) -> None:
    if event is not None:
        withdrawn = ctx.review.withdraw(target)
        if isinstance(withdrawn, Err):
            ctx.console.warning(withdrawn.error.pretty())
        ctx.console.print(f"event: {event.event_id}", Style.DIM)

    if output is None:
        return
    written = write_github_outputs(output, event)
    if isinstance(written, Err):
        fail(ctx, written.error)


def approve(
    target: str = typer.Argument(..., help="Target id"),
    content_hash: str = typer.Option(
        ..., "--hash", help="Content hash of the reviewed proposal"
    ),
    github_output: Path | None = typer.Option(
        None, "--github-output", help="Step output file (default: $GITHUB_OUTPUT)"
    ),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds allowed"),
) -> None:
    """Publish the pending release of a target (exactly once)."""
    ctx = build_context()
    coordinator = unwrap_or_exit(build_coordinator(ctx, target), ctx)
    budget = timeout if timeout is not None else ctx.config.engine.timeout

    event = unwrap_or_exit(coordinator.approve(content_hash.strip(), timeout=budget), ctx)
    _finish(ctx, target, event, _github_output_path(github_output))


def poll(
    target: str = typer.Argument(..., help="Target id"),
    github_output: Path | None = typer.Option(
        None, "--github-output", help="Step output file (default: $GITHUB_OUTPUT)"
    ),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds allowed"),
) -> None:
    """Apply the review decision recorded for a target, if any."""
    ctx = build_context()
    coordinator = unwrap_or_exit(build_coordinator(ctx, target), ctx)
    budget = timeout if timeout is not None else ctx.config.engine.timeout

    outcome = unwrap_or_exit(coordinator.poll(timeout=budget), ctx)
    ctx.console.print(f"{target}: {outcome.status}", Style.BOLD)
    _finish(ctx, target, outcome.event, _github_output_path(github_output))
