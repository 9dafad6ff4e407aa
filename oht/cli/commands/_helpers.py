"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import typer

from oht.core.errors import ErrorCode
from oht.core.result import Err, Ok, Result
from oht.output.errors import AppError, error_exit_code, print_error

if TYPE_CHECKING:
    from oht.cli.context import CLIContext


def unwrap_or_exit[T](result: Result[T, AppError], ctx: CLIContext) -> T:
    """Return the value of an Ok result, or report the error and exit.

    This helper reduces boilerplate for the common pattern:
        match result:
            case Err(e):
                print_error(e, ctx.console)
                raise typer.Exit(code=error_exit_code(e))
            case Ok(value):
                ...
    """
    match result:
        case Err(error):
            print_error(error, ctx.console)
            raise typer.Exit(code=error_exit_code(error))
        case Ok(value):
            return value


def fail(ctx: CLIContext, message: str, code: ErrorCode = ErrorCode.USER_ERROR) -> NoReturn:
    """Report a usage error and exit."""
    ctx.console.error(message)
    raise typer.Exit(code=int(code))
