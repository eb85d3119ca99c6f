from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import typer

from relgate.cli.commands._helpers import exit_code_for, report_error
from relgate.cli.context import CLIContext, build_context, build_coordinator
from relgate.core.errors import ErrorCode
from relgate.core.result import Err, Ok, Result
from relgate.output.console import Style
from relgate.release.errors import ReleaseError
from relgate.release.model import RunOutcome


def _run_one(
    ctx: CLIContext, target_id: str, timeout: float
) -> Result[RunOutcome, ReleaseError]:
    coordinator = build_coordinator(ctx, target_id)
    if isinstance(coordinator, Err):
        return coordinator
    return coordinator.value.run(timeout=timeout)


def run(
    targets: list[str] = typer.Argument(
        None, help="Target ids (default: every configured target)", show_default=False
    ),
    jobs: int = typer.Option(1, "--jobs", "-j", min=1, help="Targets processed in parallel"),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Seconds allowed per target (default: engine.timeout)"
    ),
) -> None:
    """Compute or refresh the pending release of each target."""
    ctx = build_context()
    target_ids = list(targets) if targets else [t.id for t in ctx.config.targets]
    budget = timeout if timeout is not None else ctx.config.engine.timeout

    if jobs == 1 or len(target_ids) <= 1:
        results = [_run_one(ctx, t, budget) for t in target_ids]
    else:
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            results = list(pool.map(lambda t: _run_one(ctx, t, budget), target_ids))

    code = ErrorCode.OK
    for target_id, result in zip(target_ids, results, strict=True):
        match result:
            case Ok(outcome):
                detail = f" {outcome.pending.decision.next}" if outcome.pending else ""
                ctx.console.print(f"{target_id}: {outcome.state}{detail}", Style.BOLD)
            case Err(error):
                ctx.console.print(f"{target_id}: failed", Style.BOLD)
                report_error(ctx.console, error)
                if code is ErrorCode.OK:
                    code = exit_code_for(error)

    if not code.is_success:
        raise typer.Exit(code=int(code))
