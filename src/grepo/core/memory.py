"""Dict-backed git backend for tests of traversal and aggregation logic."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Set, Union

from .backend import GitBackend
from .deadline import Deadline
from .errors import GitCommandError
from .models import Commit, CommitNode, HeadKind, HeadState

DEFAULT_AUTHOR = "Test User <test@example.com>"


@dataclass
class FakeRepository:
    """An in-memory repository with branches, commits and a HEAD.

    ``head`` holds a branch name when attached; ``detached_at`` holds a
    commit id when HEAD is detached.
    """

    path: Path
    branches: Dict[Union[str, bytes], Optional[str]] = field(default_factory=dict)
    commits: Dict[str, CommitNode] = field(default_factory=dict)
    head: Optional[str] = "main"
    detached_at: Optional[str] = None
    broken_branches: Set[str] = field(default_factory=set)
    broken_head: bool = False
    _clock: int = 1_700_000_000

    def commit(
        self,
        message: str,
        branch: Optional[str] = None,
        author: str = DEFAULT_AUTHOR,
        parents: Optional[Sequence[str]] = None,
    ) -> str:
        """Create a commit on ``branch`` (default: the current branch) and return its id."""
        branch = branch or self.head or "main"
        if parents is None:
            tip = self.branches.get(branch)
            parents = [tip] if tip else []
        self._clock += 60
        digest = hashlib.sha1(
            f"{message}\0{author}\0{','.join(parents)}\0{self._clock}".encode("utf-8")
        ).hexdigest()
        self.commits[digest] = CommitNode(
            commit=Commit(id=digest, author=author, message=message),
            parents=tuple(parents),
            timestamp=self._clock,
        )
        self.branches[branch] = digest
        return digest

    def create_branch(self, name: Union[str, bytes], at: Optional[str] = None) -> None:
        """Create a branch pointing at ``at`` (default: the current HEAD commit)."""
        if at is None:
            at = self.detached_at or (self.branches.get(self.head) if self.head else None)
        self.branches[name] = at

    def checkout(self, name: str) -> None:
        self.head = name
        self.detached_at = None

    def detach(self, commit_id: str) -> None:
        self.head = None
        self.detached_at = commit_id


class InMemoryBackend(GitBackend):
    """A :class:`GitBackend` whose repositories live in a dictionary keyed by path."""

    def __init__(self) -> None:
        self.repositories: Dict[Path, FakeRepository] = {}
        self.opened: List[Path] = []

    def create_repository(
        self, path: Union[str, Path], initial_branch: str = "main"
    ) -> FakeRepository:
        key = Path(path).expanduser()
        repo = FakeRepository(path=key, head=initial_branch)
        self.repositories[key] = repo
        return repo

    def open_repository(self, path: Path, deadline: Optional[Deadline] = None) -> FakeRepository:
        key = Path(path).expanduser()
        if key not in self.repositories:
            raise GitCommandError("Not a git repository", "open", str(key))
        self.opened.append(key)
        return self.repositories[key]

    def list_local_branches(
        self, handle: FakeRepository, deadline: Optional[Deadline] = None
    ) -> List[bytes]:
        return [
            name if isinstance(name, bytes) else name.encode("utf-8") for name in handle.branches
        ]

    def current_head(
        self, handle: FakeRepository, deadline: Optional[Deadline] = None
    ) -> HeadState:
        if handle.broken_head:
            raise GitCommandError("Failed to read HEAD", "symbolic-ref HEAD", "corrupt HEAD")
        if handle.head is None:
            return HeadState(HeadKind.DETACHED, commit_id=handle.detached_at)
        tip = handle.branches.get(handle.head)
        if tip is None:
            return HeadState(HeadKind.UNBORN, branch_name=handle.head)
        if tip not in handle.commits:
            raise GitCommandError(
                "HEAD branch does not resolve to a commit", "resolve HEAD", handle.head
            )
        return HeadState(HeadKind.BRANCH, branch_name=handle.head, commit_id=tip)

    def resolve_branch(
        self, handle: FakeRepository, branch_name: str, deadline: Optional[Deadline] = None
    ) -> str:
        tip = handle.branches.get(branch_name)
        if branch_name in handle.broken_branches or tip is None or tip not in handle.commits:
            raise GitCommandError(
                f"Branch {branch_name} does not resolve to a commit", "resolve", branch_name
            )
        return tip

    def ancestry(
        self, handle: FakeRepository, tip: str, deadline: Optional[Deadline] = None
    ) -> Iterator[CommitNode]:
        seen: Set[str] = set()
        stack = [tip]
        while stack:
            commit_id = stack.pop()
            if commit_id in seen:
                continue
            seen.add(commit_id)
            node = handle.commits[commit_id]
            yield node
            stack.extend(node.parents)
