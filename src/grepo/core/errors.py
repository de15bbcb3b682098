"""Error types raised by the grepo engine."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class GrepoError(Exception):
    """Base class for all grepo errors."""


class GitCommandError(GrepoError):
    """A git invocation failed."""

    def __init__(self, message: str, command: str, output: str, returncode: int = -1) -> None:
        """Initialize error."""
        super().__init__(message)
        self.command = command
        self.output = output
        self.returncode = returncode


class RepoOpenError(GrepoError):
    """A watched repository is missing, unreadable or not a git repository."""

    def __init__(self, repo_name: str, path: Union[str, Path], reason: str) -> None:
        super().__init__(f"Cannot open repository '{repo_name}' at {path}: {reason}")
        self.repo_name = repo_name
        self.path = Path(path)
        self.reason = reason


class BranchResolutionError(GrepoError):
    """A branch reference cannot be decoded or resolved to a commit."""

    def __init__(self, repo_name: str, branch_name: Optional[str], reason: str) -> None:
        label = branch_name if branch_name is not None else "<undecodable>"
        super().__init__(f"Cannot resolve branch '{label}' in '{repo_name}': {reason}")
        self.repo_name = repo_name
        self.branch_name = branch_name
        self.reason = reason


class HeadResolutionError(GrepoError):
    """HEAD exists but cannot be resolved to a usable reference.

    An unborn HEAD is a valid state and never raises this error.
    """

    def __init__(self, repo_name: str, reason: str) -> None:
        super().__init__(f"Cannot resolve HEAD in '{repo_name}': {reason}")
        self.repo_name = repo_name
        self.reason = reason


class SearchTimeoutError(GrepoError):
    """The deadline expired while working on a repository."""

    def __init__(self, repo_name: Optional[str] = None) -> None:
        where = f" while processing '{repo_name}'" if repo_name else ""
        super().__init__(f"Deadline exceeded{where}")
        self.repo_name = repo_name


class SearchError(GrepoError):
    """A commit search failed as a whole."""
