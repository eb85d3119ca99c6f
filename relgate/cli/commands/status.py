from __future__ import annotations

import typer

from relgate.cli.commands._helpers import unwrap_or_exit
from relgate.cli.context import build_context, build_coordinator
from relgate.output.console import Style


def status(
    target: str = typer.Argument(..., help="Target id"),
) -> None:
    """Show the release state of a target."""
    ctx = build_context()
    coordinator = unwrap_or_exit(build_coordinator(ctx, target), ctx)
    record = unwrap_or_exit(coordinator.status(), ctx)
    console = ctx.console

    console.header(f"{target}: {record.state}")
    console.print(f"revision: {record.revision}", Style.DIM)

    marker = record.last_published
    if marker is None:
        console.print("last published: (never)")
    else:
        console.print(
            f"last published: {marker.tag} at {marker.to_ref[:7]} ({marker.published_at})"
        )

    pending = record.pending
    if pending is not None:
        d = pending.decision
        console.print(f"pending: {d.previous} -> {d.next} ({d.bump.value})")
        console.print(f"commits: {pending.source_range.pretty()}")
        console.print(f"content hash: {pending.content_hash}")
        console.print(f"proposal: {ctx.review.proposal_path(target)}", Style.DIM)
        console.newline()
        console.print(pending.changelog.text.rstrip())

    if record.outbox is not None:
        console.warning(f"undelivered event: {record.outbox.event_id}")
