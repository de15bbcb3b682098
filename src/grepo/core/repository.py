"""Opening watched repositories."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from .backend import GitBackend, GitCliBackend
from .deadline import Deadline
from .errors import GitCommandError, RepoOpenError
from .models import RepositoryRef, WatchedRepositorySet

logger = logging.getLogger(__name__)

_default_backend: Optional[GitBackend] = None


def default_backend() -> GitBackend:
    """Return the shared :class:`GitCliBackend`."""
    global _default_backend
    if _default_backend is None:
        _default_backend = GitCliBackend()
    return _default_backend


class RepositoryHandle:
    """Maps a watched repository name to an opened repository.

    A handle is cheap to build and holds no open state of its own; every call
    to :meth:`open` asks the backend again, so the result reflects what is on
    disk right now.

    Attributes:
        base_path (Path): Directory the watched repositories live under.
        name (str): Repository name, relative to ``base_path``.
        path (Path): ``base_path / name``.
    """

    def __init__(
        self,
        base_path: Union[str, Path],
        name: str,
        backend: Optional[GitBackend] = None,
    ) -> None:
        """Initialize handle."""
        self.base_path = Path(base_path).expanduser()
        self.name = name
        self.path = self.base_path / name
        self.backend = backend or default_backend()

    def __str__(self) -> str:
        """Return string representation."""
        return f"RepositoryHandle({self.path})"

    def __repr__(self) -> str:
        """Return string representation."""
        return self.__str__()

    def open(self, deadline: Optional[Deadline] = None) -> RepositoryRef:
        """Open the repository.

        Returns:
            RepositoryRef: Reference valid for the current engine call only.

        Raises:
            RepoOpenError: If the path is missing, unreadable or not a repository.
            SearchTimeoutError: If ``deadline`` expires while opening.
        """
        if not self.name or Path(self.name).is_absolute() or ".." in Path(self.name).parts:
            raise RepoOpenError(self.name, self.path, "invalid repository name")
        try:
            handle = self.backend.open_repository(self.path, deadline=deadline)
        except GitCommandError as e:
            reason = f"{e}: {e.output}" if e.output else str(e)
            raise RepoOpenError(self.name, self.path, reason) from e
        return RepositoryRef(name=self.name, path=self.path, handle=handle)

    def exists(self) -> bool:
        """Check if the path exists and is a git repository."""
        try:
            self.open()
            return True
        except RepoOpenError:
            return False


def open_repository(
    watched: WatchedRepositorySet,
    repo_name: str,
    backend: Optional[GitBackend] = None,
    deadline: Optional[Deadline] = None,
) -> RepositoryRef:
    """Open one repository of a watched set.

    Raises:
        RepoOpenError: If the repository cannot be opened.
    """
    return RepositoryHandle(watched.base_path, repo_name, backend).open(deadline)


def is_valid_repository(
    base_path: Union[str, Path], repo_name: str, backend: Optional[GitBackend] = None
) -> bool:
    """Return whether ``base_path/repo_name`` is a local git repository."""
    valid = RepositoryHandle(base_path, repo_name, backend).exists()
    if not valid:
        logger.debug("%s is not a valid repository under %s", repo_name, base_path)
    return valid
