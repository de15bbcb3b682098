"""Revision walking and commit matching."""

from __future__ import annotations

import heapq
import logging
from typing import Dict, Iterator, List, Optional, Tuple

from .backend import GitBackend
from .branch import BranchCatalog
from .deadline import Deadline
from .errors import BranchResolutionError, GitCommandError
from .models import Branch, Commit, CommitMatch, CommitNode, RepositoryRef
from .repository import default_backend

logger = logging.getLogger(__name__)


class CommitSearchEngine:
    """Walks branch histories and filters their commits.

    Each branch is walked over its full history. Commits shared by several
    branches are reported once per branch that reaches them.
    """

    def __init__(
        self, backend: Optional[GitBackend] = None, catalog: Optional[BranchCatalog] = None
    ) -> None:
        self.backend = backend or default_backend()
        self.catalog = catalog or BranchCatalog(self.backend)

    def resolve_tip(
        self, ref: RepositoryRef, branch: Branch, deadline: Optional[Deadline] = None
    ) -> str:
        """Return the commit id ``branch`` points to.

        Raises:
            BranchResolutionError: If the branch does not resolve to a commit.
        """
        try:
            return self.backend.resolve_branch(ref.handle, branch.branch_name, deadline=deadline)
        except GitCommandError as e:
            raise BranchResolutionError(ref.name, branch.branch_name, e.output or str(e)) from e

    def walk_branch(
        self, ref: RepositoryRef, branch: Branch, deadline: Optional[Deadline] = None
    ) -> Iterator[Commit]:
        """Walk every ancestor of ``branch``'s tip, children before parents.

        The tip is resolved immediately; history is read and ordered when the
        returned iterator is first advanced.

        Raises:
            BranchResolutionError: If the branch does not resolve to a commit.
        """
        tip = self.resolve_tip(ref, branch, deadline)
        return self._walk(ref, branch, tip, deadline or Deadline.never())

    def _walk(
        self, ref: RepositoryRef, branch: Branch, tip: str, deadline: Deadline
    ) -> Iterator[Commit]:
        nodes = self._load_graph(ref, tip, deadline)
        if tip not in nodes:
            raise BranchResolutionError(
                ref.name, branch.branch_name, f"tip {tip} missing from history"
            )

        # Number of not-yet-emitted children per commit, within the reachable set.
        pending: Dict[str, int] = {commit_id: 0 for commit_id in nodes}
        for node in nodes.values():
            for parent in node.parents:
                if parent in pending:
                    pending[parent] += 1

        ready: List[Tuple[int, str]] = [
            (-nodes[commit_id].timestamp, commit_id)
            for commit_id, count in pending.items()
            if count == 0
        ]
        heapq.heapify(ready)
        emitted = 0
        while ready:
            deadline.check(ref.name)
            _, commit_id = heapq.heappop(ready)
            node = nodes[commit_id]
            emitted += 1
            yield node.commit
            for parent in node.parents:
                if parent not in pending:
                    continue
                pending[parent] -= 1
                if pending[parent] == 0:
                    heapq.heappush(ready, (-nodes[parent].timestamp, parent))

        if emitted != len(nodes):
            logger.warning(
                "History of %s/%s has a cycle; %d of %d commits walked",
                ref.name,
                branch.branch_name,
                emitted,
                len(nodes),
            )

    def _load_graph(
        self, ref: RepositoryRef, tip: str, deadline: Deadline
    ) -> Dict[str, CommitNode]:
        nodes: Dict[str, CommitNode] = {}
        for node in self.backend.ancestry(ref.handle, tip, deadline=deadline):
            deadline.check(ref.name)
            nodes[node.id] = node
        logger.debug("Loaded %d commits reachable from %s in %s", len(nodes), tip[:12], ref.name)
        return nodes

    @staticmethod
    def matches(commit: Commit, pattern: str, include_author: bool = False) -> bool:
        """Return whether the message, or optionally the author, contains ``pattern``."""
        if pattern in commit.message:
            return True
        return include_author and pattern in commit.author

    def search_branch(
        self,
        ref: RepositoryRef,
        branch: Branch,
        pattern: str,
        include_author: bool = False,
        deadline: Optional[Deadline] = None,
    ) -> List[CommitMatch]:
        """Return the commits of one branch that match ``pattern``."""
        return [
            CommitMatch(repo_name=ref.name, branch_name=branch.branch_name, commit=commit)
            for commit in self.walk_branch(ref, branch, deadline)
            if self.matches(commit, pattern, include_author)
        ]

    def search_repository(
        self,
        ref: RepositoryRef,
        pattern: str,
        include_author: bool = False,
        deadline: Optional[Deadline] = None,
    ) -> List[CommitMatch]:
        """Walk every local branch of ``ref`` and collect matching commits.

        Raises:
            BranchResolutionError: If any branch cannot be listed or resolved.
        """
        found: List[CommitMatch] = []
        for branch in self.catalog.list_local_branches(ref, deadline=deadline):
            found.extend(self.search_branch(ref, branch, pattern, include_author, deadline))
        return found
