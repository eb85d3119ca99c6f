"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from relgate.core.errors import ErrorCode
from relgate.core.result import Err, Result
from relgate.output.console import Style
from relgate.release.errors import ReleaseError, ReleaseErrorKind

if TYPE_CHECKING:
    from relgate.cli.context import CLIContext
    from relgate.output.console import ConsoleProtocol

T = TypeVar("T")

_EXIT_CODES: dict[ReleaseErrorKind, ErrorCode] = {
    "history_unavailable": ErrorCode.HISTORY_ERROR,
    "timeout": ErrorCode.TIMEOUT,
    "no_pending_release": ErrorCode.USER_ERROR,
    "stale_approval": ErrorCode.USER_ERROR,
    "invalid_input": ErrorCode.USER_ERROR,
    "store_write_conflict": ErrorCode.STATE_ERROR,
    "store_failed": ErrorCode.STATE_ERROR,
    "review_failed": ErrorCode.ENV_ERROR,
    "event_failed": ErrorCode.ENV_ERROR,
    "config_invalid": ErrorCode.ENV_ERROR,
}


def exit_code_for(error: ReleaseError) -> ErrorCode:
    return _EXIT_CODES.get(error.kind, ErrorCode.USER_ERROR)


def report_error(console: ConsoleProtocol, error: ReleaseError) -> None:
    console.error(error.message)
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def fail(ctx: CLIContext, error: ReleaseError) -> NoReturn:
    report_error(ctx.console, error)
    raise typer.Exit(code=int(exit_code_for(error)))


def unwrap_or_exit(result: Result[T, ReleaseError], ctx: CLIContext) -> T:
    """Return the value of an Ok result, or report the error and exit.

    Replaces the common pattern:
        if isinstance(result, Err):
            ctx.console.error(result.error.message)
            raise typer.Exit(code=...)
        value = result.value
    """
    if isinstance(result, Err):
        fail(ctx, result.error)
    return result.value
