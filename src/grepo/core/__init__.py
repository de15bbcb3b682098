"""Core functionality for grepo."""

from .backend import GitBackend, GitCliBackend
from .branch import BranchCatalog
from .commits import CommitSearchEngine
from .config import Config
from .deadline import Deadline
from .errors import (
    BranchResolutionError,
    GitCommandError,
    GrepoError,
    HeadResolutionError,
    RepoOpenError,
    SearchError,
    SearchTimeoutError,
)
from .models import (
    NO_BRANCH,
    Branch,
    Commit,
    CommitMatch,
    RepoOutcome,
    WatchedRepositorySet,
    group_by_commit,
)
from .repository import RepositoryHandle, is_valid_repository, open_repository
from .search import SearchAggregator

__all__ = [
    "NO_BRANCH",
    "Branch",
    "BranchCatalog",
    "BranchResolutionError",
    "Commit",
    "CommitMatch",
    "CommitSearchEngine",
    "Config",
    "Deadline",
    "GitBackend",
    "GitCliBackend",
    "GitCommandError",
    "GrepoError",
    "HeadResolutionError",
    "RepoOpenError",
    "RepoOutcome",
    "RepositoryHandle",
    "SearchAggregator",
    "SearchError",
    "SearchTimeoutError",
    "WatchedRepositorySet",
    "group_by_commit",
    "is_valid_repository",
    "open_repository",
]
