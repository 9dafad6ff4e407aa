from __future__ import annotations

import os
import sys
from pathlib import Path

import typer

from oht import __version__
from oht.cli.commands.bundle import bundle
from oht.cli.commands.unbundle import unbundle
from oht.cli.commands.version import add_timestamp_to_version
from oht.cli.context import CONFIG_ENV, DEBUG_ENV
from oht.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Toolbox for deploying Helm charts with OCM.",
)


# Commands
app.command("add-timestamp-to-version")(add_timestamp_to_version)
app.command()(bundle)
app.command()(unbundle)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    debug: bool = typer.Option(False, "--debug", help="Print debug messages to stderr."),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Configuration file (default: ./oht.toml if present)",
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if debug:
        os.environ[DEBUG_ENV] = "1"

    if config is not None:
        try:
            path = config.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --config: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        if not path.is_file():
            typer.echo(f"error: --config '{path}' is not a file", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        os.environ[CONFIG_ENV] = str(path)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("interrupted", err=True)
        sys.exit(int(ErrorCode.INTERRUPTED))
