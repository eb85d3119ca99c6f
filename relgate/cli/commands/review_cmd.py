"""Human side of the file-backed review surface."""

from __future__ import annotations

import typer

from relgate.cli.commands._helpers import fail, unwrap_or_exit
from relgate.cli.context import CLIContext, build_context
from relgate.release.errors import ReleaseError
from relgate.release.review import Decision

review_app = typer.Typer(add_completion=False, no_args_is_help=True)


def _record(ctx: CLIContext, target: str, decision: Decision, content_hash: str) -> None:
    pending = ctx.store.get(target)
    if pending is None:
        fail(
            ctx,
            ReleaseError(
                kind="no_pending_release",
                message=f"no pending release for {target}",
                hint="Run `relgate run` to compute a proposal first.",
            ),
        )
    if pending.content_hash != content_hash:
        fail(
            ctx,
            ReleaseError(
                kind="stale_approval",
                message=f"{content_hash[:12]} is not the current proposal for {target}",
                hint=f"Current proposal: {pending.content_hash}",
            ),
        )

    unwrap_or_exit(ctx.review.record_decision(target, decision, content_hash), ctx)
    ctx.console.success(f"{target}: {decision} {pending.decision.next}")


@review_app.command("approve")
def approve_proposal(
    target: str = typer.Argument(..., help="Target id"),
    content_hash: str = typer.Option(..., "--hash", help="Content hash of the proposal"),
) -> None:
    """Record an approval; `relgate poll` publishes it."""
    ctx = build_context()
    _record(ctx, target, "approved", content_hash.strip())


@review_app.command("reject")
def reject_proposal(
    target: str = typer.Argument(..., help="Target id"),
    content_hash: str = typer.Option(..., "--hash", help="Content hash of the proposal"),
) -> None:
    """Record a rejection; the proposal stays pending until history changes."""
    ctx = build_context()
    _record(ctx, target, "rejected", content_hash.strip())
