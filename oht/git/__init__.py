"""Git metadata lookup."""

from .location import GitError, GitLocation, try_get_git_location

__all__ = ["GitError", "GitLocation", "try_get_git_location"]
