"""Records exchanged between the grepo engine and its callers.

Every record is a frozen snapshot built from the on-disk state of a
repository during a single engine call. Nothing here is cached or mutated
after construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

NO_BRANCH = "(no branch)"


@dataclass(frozen=True)
class WatchedRepositorySet:
    """Base path plus the ordered names of the repositories under it."""

    base_path: str
    repo_names: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "repo_names", tuple(self.repo_names))

    def path_for(self, repo_name: str) -> Path:
        """Return the filesystem path of a watched repository."""
        return Path(self.base_path).expanduser() / repo_name

    def __len__(self) -> int:
        return len(self.repo_names)


@dataclass(frozen=True)
class RepositoryRef:
    """An opened repository, valid for the duration of one engine call."""

    name: str
    path: Path
    handle: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Branch:
    """A local branch, scoped to its owning repository."""

    repo_name: str
    branch_name: str


@dataclass(frozen=True)
class Commit:
    """A commit identified by its content hash."""

    id: str
    author: str
    message: str


@dataclass(frozen=True)
class CommitNode:
    """A commit together with the graph edges needed to walk history."""

    commit: Commit
    parents: Tuple[str, ...] = ()
    timestamp: int = 0

    @property
    def id(self) -> str:
        return self.commit.id


@dataclass(frozen=True)
class CommitMatch:
    """A commit found by a search, labelled with the branch walk that found it."""

    repo_name: str
    branch_name: str
    commit: Commit


class HeadKind(Enum):
    """Where HEAD points."""

    BRANCH = "branch"
    DETACHED = "detached"
    UNBORN = "unborn"


@dataclass(frozen=True)
class HeadState:
    """Resolved state of a repository's HEAD."""

    kind: HeadKind
    branch_name: Optional[str] = None
    commit_id: Optional[str] = None


@dataclass(frozen=True)
class RepoOutcome:
    """Per-repository result of an aggregate operation.

    An outcome is either opened (``error`` is ``None``) and carries whatever
    the operation collected, or failed and carries the exception that made
    the repository contribute nothing.
    """

    repo_name: str
    branches: Tuple[Branch, ...] = ()
    commits: Tuple[CommitMatch, ...] = ()
    current_branch: Optional[str] = None
    error: Optional[Exception] = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    @classmethod
    def opened(
        cls,
        repo_name: str,
        branches: Tuple[Branch, ...] = (),
        commits: Tuple[CommitMatch, ...] = (),
        current_branch: Optional[str] = None,
    ) -> "RepoOutcome":
        return cls(
            repo_name=repo_name,
            branches=tuple(branches),
            commits=tuple(commits),
            current_branch=current_branch,
        )

    @classmethod
    def failed(cls, repo_name: str, error: Exception) -> "RepoOutcome":
        return cls(repo_name=repo_name, error=error)


@dataclass(frozen=True)
class GroupedCommit:
    """A commit reported once, with every branch that reaches it."""

    repo_name: str
    commit: Commit
    branch_names: Tuple[str, ...]


def group_by_commit(matches: List[CommitMatch]) -> List[GroupedCommit]:
    """Collapse per-branch matches into one record per (repository, commit).

    Order follows the first appearance of each commit in ``matches``; branch
    names keep the order in which they reported the commit.
    """
    grouped: Dict[Tuple[str, str], List[str]] = {}
    commits: Dict[Tuple[str, str], Commit] = {}
    for match in matches:
        key = (match.repo_name, match.commit.id)
        if key not in grouped:
            grouped[key] = []
            commits[key] = match.commit
        if match.branch_name not in grouped[key]:
            grouped[key].append(match.branch_name)
    return [
        GroupedCommit(repo_name=key[0], commit=commits[key], branch_names=tuple(names))
        for key, names in grouped.items()
    ]
