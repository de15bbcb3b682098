"""Maintaining the list of watched repositories."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .backend import GitBackend
from .config import Config
from .repository import is_valid_repository

logger = logging.getLogger(__name__)


@dataclass
class WatchResult:
    """Names affected by a watch-list change, and the ones that were not."""

    changed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def split_names(names: Union[str, Iterable[str]]) -> List[str]:
    """Split comma separated repository names, trimming blanks."""
    if isinstance(names, str):
        names = [names]
    parts = []
    for chunk in names:
        parts.extend(part.strip() for part in chunk.split(","))
    return [part for part in parts if part]


class WatchManager:
    """Adds, removes and discovers watched repositories and saves the result."""

    def __init__(self, config: Config, backend: Optional[GitBackend] = None) -> None:
        """Initialize watch manager."""
        self.config = config
        self.backend = backend

    def add(self, names: Union[str, Iterable[str]], reset: bool = False) -> WatchResult:
        """Watch repositories under the base path.

        Names that are not valid repositories are skipped. With ``reset`` the
        current list is replaced instead of extended.
        """
        result = WatchResult()
        repos = [] if reset else list(self.config.repos)
        for name in split_names(names):
            if not is_valid_repository(self.config.base_path, name, self.backend):
                logger.info("Skipping %s: not a valid repository", name)
                result.skipped.append(name)
                continue
            if name not in repos:
                repos.append(name)
            result.changed.append(name)
        self.config.set_repos(repos)
        self.config.save()
        return result

    def remove(self, names: Union[str, Iterable[str]]) -> WatchResult:
        """Stop watching repositories. Unknown names are reported as skipped."""
        result = WatchResult()
        repos = list(self.config.repos)
        for name in split_names(names):
            if name in repos:
                repos.remove(name)
                result.changed.append(name)
            else:
                logger.info("Repo %s is not watched", name)
                result.skipped.append(name)
        self.config.set_repos(repos)
        self.config.save()
        return result

    def scan_base_dir(self) -> WatchResult:
        """Replace the watched list with every repository found under the base path.

        Raises:
            FileNotFoundError: If the base path does not exist.
            NotADirectoryError: If the base path is not a directory.
        """
        base = Path(self.config.base_path).expanduser()
        if not base.exists():
            raise FileNotFoundError(f"Base path {base} does not exist")
        if not base.is_dir():
            raise NotADirectoryError(f"Base path {base} is not a directory")

        result = WatchResult()
        for entry in sorted(base.iterdir(), key=lambda p: p.name):
            if not entry.is_dir():
                continue
            if is_valid_repository(base, entry.name, self.backend):
                logger.info("Found repo: %s", entry.name)
                result.changed.append(entry.name)
            else:
                logger.info("Skipping %s: not a valid repository", entry.name)
                result.skipped.append(entry.name)
        self.config.set_repos(result.changed)
        self.config.save()
        return result

    def set_base_path(self, path: Union[str, Path]) -> str:
        """Change the base path and return the previous one."""
        previous = self.config.base_path
        self.config.base_path = str(path)
        self.config.config["base_path"] = self.config.base_path
        self.config.save()
        return previous
