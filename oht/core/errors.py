"""Error codes for CLI exit status.

These values are used as process exit codes and should remain stable:
- 0: Success
- 1: User error (malformed --image-relation, missing option, bad chart)
- 2: Environment error (ocm missing or not runnable)
- 3: External tool error (ocm or git failed)
- 5: I/O error (cannot read or write a file)
- 130: Interrupted (SIGINT)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    EXTERNAL_ERROR = 3
    IO_ERROR = 5
    INTERRUPTED = 130

    def __str__(self) -> str:
        """Return human-readable name."""
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
