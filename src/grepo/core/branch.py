"""Branch enumeration and HEAD resolution."""

from __future__ import annotations

import logging
from typing import List, Optional

from .backend import GitBackend
from .deadline import Deadline
from .errors import BranchResolutionError, GitCommandError, HeadResolutionError
from .models import NO_BRANCH, Branch, HeadKind, HeadState, RepositoryRef
from .repository import default_backend

logger = logging.getLogger(__name__)


class BranchCatalog:
    """Lists local branches and resolves the current branch of opened repositories."""

    def __init__(self, backend: Optional[GitBackend] = None) -> None:
        self.backend = backend or default_backend()

    def list_local_branches(
        self, ref: RepositoryRef, deadline: Optional[Deadline] = None
    ) -> List[Branch]:
        """List local branches in the order the backend yields them.

        Raises:
            BranchResolutionError: If a branch name is not valid UTF-8 or the
                branch list cannot be read.
        """
        try:
            raw_names = self.backend.list_local_branches(ref.handle, deadline=deadline)
        except GitCommandError as e:
            raise BranchResolutionError(ref.name, None, e.output or str(e)) from e

        branches = []
        for raw in raw_names:
            try:
                name = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise BranchResolutionError(
                    ref.name, None, f"branch name {raw!r} is not valid UTF-8"
                ) from e
            branches.append(Branch(repo_name=ref.name, branch_name=name))
        return branches

    def head_state(self, ref: RepositoryRef, deadline: Optional[Deadline] = None) -> HeadState:
        """Resolve HEAD of ``ref``.

        Raises:
            HeadResolutionError: If HEAD cannot be resolved. An unborn HEAD is
                not an error.
        """
        try:
            return self.backend.current_head(ref.handle, deadline=deadline)
        except GitCommandError as e:
            raise HeadResolutionError(ref.name, e.output or str(e)) from e
        except UnicodeDecodeError as e:
            raise HeadResolutionError(ref.name, f"HEAD names an undecodable branch: {e}") from e

    def current_branch_name(self, ref: RepositoryRef, deadline: Optional[Deadline] = None) -> str:
        """Return the short name of the branch HEAD points to.

        Returns :data:`NO_BRANCH` when HEAD is unborn (no commits yet) or
        detached.

        Raises:
            HeadResolutionError: If HEAD cannot be resolved at all.
        """
        state = self.head_state(ref, deadline=deadline)
        if state.kind is HeadKind.BRANCH and state.branch_name:
            return state.branch_name
        logger.debug("%s is not on a branch (%s)", ref.name, state.kind.value)
        return NO_BRANCH


def list_local_branches(ref: RepositoryRef, backend: Optional[GitBackend] = None) -> List[Branch]:
    """List local branches of an opened repository."""
    return BranchCatalog(backend).list_local_branches(ref)


def current_branch_name(ref: RepositoryRef, backend: Optional[GitBackend] = None) -> str:
    """Get the current branch name of an opened repository."""
    return BranchCatalog(backend).current_branch_name(ref)
