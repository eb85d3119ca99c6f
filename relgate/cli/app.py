from __future__ import annotations

import os
from pathlib import Path

import typer

from relgate import __version__
from relgate.cli.commands.approve_cmd import approve, poll
from relgate.cli.commands.review_cmd import review_app
from relgate.cli.commands.run_cmd import run
from relgate.cli.commands.status import status
from relgate.cli.context import CONFIG_ENV_VAR
from relgate.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(run)
app.command()(status)
app.command()(approve)
app.command()(poll)

# Sub-apps
app.add_typer(review_app, name="review", help="Record review decisions on proposals.")


def _print_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        callback=_print_version,
        is_eager=True,
        help="Show version and exit.",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Path to relgate.toml (default: ./relgate.toml)",
    ),
) -> None:
    del version
    if config is not None:
        path = config.expanduser()
        if path.is_dir():
            typer.echo(f"error: --config '{path}' is a directory", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))
        if not path.exists():
            typer.echo(f"error: --config '{path}' does not exist", err=True)
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

        os.environ[CONFIG_ENV_VAR] = str(path.resolve())


def main() -> None:
    app()
