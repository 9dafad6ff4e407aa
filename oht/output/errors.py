"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from oht.core.config import ConfigError
from oht.core.errors import ErrorCode
from oht.core.helmchart import ChartError
from oht.core.ocm import OcmError
from oht.core.relation import RelationError
from oht.git.location import GitError
from oht.output.console import Style

if TYPE_CHECKING:
    from oht.output.console import ConsoleProtocol

__all__ = ["AppError", "error_exit_code", "print_error"]

type AppError = ChartError | ConfigError | GitError | OcmError | RelationError


def print_error(error: AppError, console: ConsoleProtocol) -> None:
    """Print an error to the console with appropriate formatting."""
    console.error(error.message)
    match error:
        case RelationError(hint=hint) | ChartError(hint=hint) | OcmError(hint=hint) if hint:
            console.print(f"hint: {hint}", Style.DIM)
        case _:
            pass


def error_exit_code(error: AppError) -> int:
    """Get the exit code for an error."""
    match error:
        case RelationError() | ConfigError():
            return int(ErrorCode.USER_ERROR)
        case ChartError(kind="io"):
            return int(ErrorCode.IO_ERROR)
        case ChartError():
            return int(ErrorCode.USER_ERROR)
        case GitError():
            return int(ErrorCode.EXTERNAL_ERROR)
        case OcmError(kind="ocm_missing"):
            return int(ErrorCode.ENV_ERROR)
        case OcmError(kind="ocm_failed" | "invalid_output"):
            return int(ErrorCode.EXTERNAL_ERROR)
        case OcmError():
            return int(ErrorCode.USER_ERROR)
