"""Aggregate operations over a whole watched repository set.

Every repository is handled by its own task on a bounded thread pool. A task
opens the repository, does its work and returns a :class:`RepoOutcome`;
results are gathered on the calling thread and put back into watched-set
order, so concurrent execution does not change what callers see.

Failure policy:

* A repository that cannot be opened, times out, or has an unreadable HEAD
  or branch list is skipped and logged. It never fails the whole call.
* Commit search is stricter: a branch that cannot be resolved while walking
  history fails the entire search with :class:`SearchError`.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Tuple, Type

from .backend import GitBackend
from .branch import BranchCatalog
from .commits import CommitSearchEngine
from .deadline import Deadline
from .errors import BranchResolutionError, GrepoError, RepoOpenError, SearchError
from .models import Branch, CommitMatch, RepoOutcome, RepositoryRef, WatchedRepositorySet
from .repository import default_backend, open_repository

logger = logging.getLogger(__name__)

RepoWork = Callable[[RepositoryRef, Deadline], RepoOutcome]

DEFAULT_MAX_WORKERS = 4


class SearchAggregator:
    """Runs branch and commit queries across a :class:`WatchedRepositorySet`."""

    def __init__(
        self,
        backend: Optional[GitBackend] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        timeout: Optional[float] = None,
    ) -> None:
        """Initialize aggregator.

        Args:
            backend: Git backend to read repositories with.
            max_workers: Upper bound on repositories processed at once.
            timeout: Default time budget in seconds for one call, ``None``
                for no limit. A deadline passed to a call overrides it.
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.backend = backend or default_backend()
        self.max_workers = max_workers
        self.timeout = timeout
        self.catalog = BranchCatalog(self.backend)
        self.engine = CommitSearchEngine(self.backend, self.catalog)

    def _deadline(self, deadline: Optional[Deadline]) -> Deadline:
        return deadline if deadline is not None else Deadline(self.timeout)

    def _run_one(
        self,
        watched: WatchedRepositorySet,
        repo_name: str,
        work: RepoWork,
        deadline: Deadline,
    ) -> RepoOutcome:
        try:
            deadline.check(repo_name)
            ref = open_repository(watched, repo_name, self.backend, deadline)
            return work(ref, deadline)
        except RepoOpenError as e:
            logger.warning("Skipping %s: %s", repo_name, e.reason)
            return RepoOutcome.failed(repo_name, e)
        except GrepoError as e:
            logger.warning("Failed to process %s: %s", repo_name, e)
            return RepoOutcome.failed(repo_name, e)

    def _fan_out(
        self,
        watched: WatchedRepositorySet,
        work: RepoWork,
        deadline: Optional[Deadline] = None,
        fatal: Tuple[Type[Exception], ...] = (),
    ) -> List[RepoOutcome]:
        """Run ``work`` for every watched repository.

        Outcomes whose error is an instance of one of ``fatal`` cancel the
        remaining tasks and raise :class:`SearchError`.
        """
        names = watched.repo_names
        if not names:
            return []
        deadline = self._deadline(deadline)
        outcomes: Dict[int, RepoOutcome] = {}

        executor = ThreadPoolExecutor(max_workers=min(len(names), self.max_workers))
        try:
            futures: Dict[Future, int] = {
                executor.submit(self._run_one, watched, name, work, deadline): index
                for index, name in enumerate(names)
            }
            for future in as_completed(futures):
                outcome = future.result()
                if fatal and isinstance(outcome.error, fatal):
                    for pending in futures:
                        pending.cancel()
                    raise SearchError(
                        f"Search aborted in {outcome.repo_name}: {outcome.error}"
                    ) from outcome.error
                outcomes[futures[future]] = outcome
        finally:
            # Tasks still running after an abort are abandoned, not awaited.
            executor.shutdown(wait=False)

        return [outcomes[index] for index in sorted(outcomes)]

    def branch_outcomes(
        self, watched: WatchedRepositorySet, deadline: Optional[Deadline] = None
    ) -> List[RepoOutcome]:
        """List the local branches of every repository, including failures."""

        def work(ref: RepositoryRef, dl: Deadline) -> RepoOutcome:
            branches = self.catalog.list_local_branches(ref, dl)
            return RepoOutcome.opened(ref.name, branches=tuple(branches))

        return self._fan_out(watched, work, deadline)

    def list_branches(
        self, watched: WatchedRepositorySet, deadline: Optional[Deadline] = None
    ) -> Dict[str, List[Branch]]:
        """Map each openable repository to its local branches."""
        return {
            outcome.repo_name: list(outcome.branches)
            for outcome in self.branch_outcomes(watched, deadline)
            if outcome.ok
        }

    def current_outcomes(
        self, watched: WatchedRepositorySet, deadline: Optional[Deadline] = None
    ) -> List[RepoOutcome]:
        """Resolve the current branch of every repository, including failures."""

        def work(ref: RepositoryRef, dl: Deadline) -> RepoOutcome:
            return RepoOutcome.opened(
                ref.name, current_branch=self.catalog.current_branch_name(ref, dl)
            )

        return self._fan_out(watched, work, deadline)

    def current_branches(
        self, watched: WatchedRepositorySet, deadline: Optional[Deadline] = None
    ) -> Dict[str, str]:
        """Map each openable repository to its current branch name.

        Repositories that are not on a branch map to ``NO_BRANCH``.
        """
        return {
            outcome.repo_name: outcome.current_branch
            for outcome in self.current_outcomes(watched, deadline)
            if outcome.ok and outcome.current_branch is not None
        }

    def branch_search(
        self,
        watched: WatchedRepositorySet,
        pattern: str,
        deadline: Optional[Deadline] = None,
    ) -> Dict[str, List[Branch]]:
        """Find branches whose name contains ``pattern``.

        Repositories without a matching branch, or that failed, are left out
        of the mapping entirely.
        """
        found: Dict[str, List[Branch]] = {}
        for outcome in self.branch_outcomes(watched, deadline):
            if not outcome.ok:
                continue
            matching = [b for b in outcome.branches if pattern in b.branch_name]
            if matching:
                found[outcome.repo_name] = matching
        return found

    def commit_outcomes(
        self,
        watched: WatchedRepositorySet,
        pattern: str,
        include_author: bool = False,
        deadline: Optional[Deadline] = None,
    ) -> List[RepoOutcome]:
        """Search commits repository by repository.

        Raises:
            SearchError: If a branch cannot be resolved in any repository.
        """

        def work(ref: RepositoryRef, dl: Deadline) -> RepoOutcome:
            matches = self.engine.search_repository(ref, pattern, include_author, dl)
            logger.debug("%d matching commits in %s", len(matches), ref.name)
            return RepoOutcome.opened(ref.name, commits=tuple(matches))

        return self._fan_out(watched, work, deadline, fatal=(BranchResolutionError,))

    def commit_search(
        self,
        watched: WatchedRepositorySet,
        pattern: str,
        include_author: bool = False,
        deadline: Optional[Deadline] = None,
    ) -> List[CommitMatch]:
        """Find commits whose message (or author) contains ``pattern``.

        Returns one record per (branch, commit) pair: a commit reachable from
        two branches is reported twice. See :func:`~grepo.core.models.group_by_commit`.

        Raises:
            SearchError: If a branch cannot be resolved in any repository.
        """
        matches: List[CommitMatch] = []
        for outcome in self.commit_outcomes(watched, pattern, include_author, deadline):
            matches.extend(outcome.commits)
        return matches
