"""Where a chart directory can be found on a Git server.

The JSON form of GitLocation is the value of the `cloud.sap/git-location`
label on the chart resource. Its keys match the `GitRepo` type used by
concourse-release-resource, so that `unbundle` can hand the rendered
git-location.json straight to it.

Usage:
    match try_get_git_location(chart_path):
        case Ok(None):
            pass  # not in a Git checkout
        case Ok(location):
            label_value = location.to_json()
        case Err(e):
            print(f"Error: {e.message}")
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

from oht.core.result import Err, Ok, Result
from oht.platform.process import ProcessError
from oht.platform.process import run as run_process

__all__ = ["GitError", "GitLocation", "GitRunner", "try_get_git_location"]

_GIT_TIMEOUT_SECONDS = 30.0
_SHOW_FORMAT = "%H %at %ct"
_BRANCH_FORMAT = "%(if)%(upstream)%(then)%(refname:short)%(end)"


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
        not_a_repository: True if git reported that the path is not in a repository
    """

    command: str
    message: str
    returncode: int = 1
    not_a_repository: bool = False


@dataclass(frozen=True, slots=True)
class GitLocation:
    commit_id: str
    authored_at: datetime | None = None
    committed_at: datetime | None = None
    branch_name: str = ""
    repository_url: str = ""
    directory_path: str = ""

    def to_dict(self) -> dict[str, object]:
        out: dict[str, object] = {
            "authored-at": _format_time(self.authored_at),
            "branch": self.branch_name,
            "committed-at": _format_time(self.committed_at),
            "commit-id": self.commit_id,
            "remote-url": self.repository_url,
        }
        if self.directory_path:
            out["subpath"] = self.directory_path
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))


def _format_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


type GitRunner = Callable[[list[str], Path], Result[str, ProcessError]]


def _default_runner(cmd: list[str], cwd: Path) -> Result[str, ProcessError]:
    return run_process(cmd, cwd=cwd, timeout=_GIT_TIMEOUT_SECONDS)


def _git(runner: GitRunner, path: Path, *args: str) -> Result[str, GitError]:
    command = f"git -C {str(path)!r} {' '.join(args)}"
    match runner(["git", "-C", str(path), *args], path):
        case Ok(stdout):
            return Ok(stdout)
        case Err(error):
            # git has no exit code specific to this case
            if "not a git repository" in error.stderr:
                return Err(
                    GitError(
                        command=command,
                        message=f"{path} is not inside a git repository",
                        returncode=error.returncode,
                        not_a_repository=True,
                    )
                )
            return Err(
                GitError(
                    command=command,
                    message=(
                        f"could not run `{command}`: {error} "
                        f"(stdout was {error.stdout!r}, stderr was {error.stderr.strip()!r})"
                    ),
                    returncode=error.returncode,
                )
            )


def try_get_git_location(
    path: Path,
    *,
    runner: GitRunner = _default_runner,
) -> Result[GitLocation | None, GitError]:
    """Return the GitLocation of `path`, or None if it is not in a Git work tree."""
    match _git(runner, path, "rev-parse", "--is-inside-work-tree"):
        case Err(error) if error.not_a_repository:
            return Ok(None)
        case Err(error):
            return Err(error)
        case Ok(out) if out.strip() != "true":
            return Ok(None)
        case Ok(_):
            pass

    # HEAD commit
    show = _git(runner, path, "show", "-s", f"--pretty={_SHOW_FORMAT}", "HEAD")
    if isinstance(show, Err):
        return show
    fields = show.value.split()
    malformed = GitError(
        command="git show",
        message=f"malformed output from `git show --pretty='{_SHOW_FORMAT}' HEAD`: {show.value.strip()!r}",
    )
    if len(fields) != 3:
        return Err(malformed)
    try:
        authored_at = datetime.fromtimestamp(int(fields[1]), tz=UTC)
        committed_at = datetime.fromtimestamp(int(fields[2]), tz=UTC)
    except ValueError:
        return Err(malformed)

    # name of the upstream-tracking branch containing HEAD (drops "detached HEAD")
    branches = _git(
        runner, path, "branch", "--contains", "HEAD", f"--format={_BRANCH_FORMAT}", "--omit-empty"
    )
    if isinstance(branches, Err):
        return branches
    branch_fields = branches.value.split()

    # path within the work tree
    prefix = _git(runner, path, "rev-parse", "--show-prefix")
    if isinstance(prefix, Err):
        return prefix
    directory_path = prefix.value.strip()
    if directory_path:
        directory_path = str(PurePosixPath(directory_path))

    # Fails if there is no remote called "origin"; without it there is no
    # good basis for choosing the main upstream URL anyway.
    remote = _git(runner, path, "remote", "get-url", "origin")
    if isinstance(remote, Err):
        return remote

    return Ok(
        GitLocation(
            commit_id=fields[0],
            authored_at=authored_at,
            committed_at=committed_at,
            branch_name=branch_fields[0] if branch_fields else "",
            repository_url=remote.value.strip(),
            directory_path=directory_path,
        )
    )
