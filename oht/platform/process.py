"""Subprocess execution with Result-based error handling.

Two flavors:

- `run` captures stdout and stderr as text. Used for git queries, where
  stderr is inspected to classify failures.
- `run_output` captures stdout as bytes and lets stderr (and optionally stdin)
  pass through to the terminal. Used for `ocm` and for command substitution
  in --image-relation, where diagnostics belong to the user.

Neither imposes a timeout unless asked. On KeyboardInterrupt the child is
killed by subprocess.run before the interrupt propagates.

Usage:
    match run_output(["ocm", "get", "resources", "-o", "json", ref], cwd=Path.cwd()):
        case Ok(stdout):
            data = json.loads(stdout)
        case Err(error):
            print(f"Failed: {error}")
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from oht.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run", "run_output"]


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: The exit code of the process (-1 if it could not be started).
        stdout: Standard output (may be empty).
        stderr: Standard error, or the OS error if the process did not start.
            Empty when stderr was passed through.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def not_started(self) -> bool:
        return self.returncode == -1

    def __str__(self) -> str:
        """Format error for display."""
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        if self.not_started:
            return f"{cmd_str} could not be executed: {self.stderr}"
        return f"{cmd_str} failed (exit {self.returncode})"


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Execute a command and return stdout or error.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Environment variables (uses current env if None).
        timeout: Maximum seconds to wait (None for no limit).

    Returns:
        Ok(stdout) on success, Err(ProcessError) on failure.
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout="",
                stderr=f"Command timed out after {timeout}s",
            )
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
            )
        )

    return Ok(proc.stdout)


def run_output(
    cmd: list[str],
    cwd: Path,
    *,
    inherit_stdin: bool = False,
) -> Result[bytes, ProcessError]:
    """Execute a command, capturing only stdout (as bytes).

    Stderr is inherited so that the tool's own diagnostics reach the user.
    Stdin is closed unless `inherit_stdin` is set (ocm may prompt for
    credentials).
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            stdin=None if inherit_stdin else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            check=False,
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=proc.returncode,
                stdout=proc.stdout.decode("utf-8", errors="replace"),
                stderr="",
            )
        )

    return Ok(proc.stdout)
