"""Configuration management for grepo."""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from .models import WatchedRepositorySet

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "GREPO_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.config/grepo/config.yml")

DEFAULT_CONFIG: Dict[str, Any] = {
    "base_path": "/repos",
    "repos": [],
    "max_workers": 4,
    "timeout": None,
    "log_file": None,
}


def default_config_path() -> Path:
    """Return the config file location, honouring ``GREPO_CONFIG``."""
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH.expanduser()


class Config:
    """Configuration class for grepo.

    Holds the base directory, the ordered list of watched repository names
    and the engine settings. Values start from :data:`DEFAULT_CONFIG` and are
    overlaid by the YAML config file when it exists.
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None) -> None:
        """Initialize configuration."""
        self.config_file = Path(config_file).expanduser() if config_file else default_config_path()
        self.config: Dict[str, Any] = {}
        self.base_path: str = DEFAULT_CONFIG["base_path"]
        self.repos: List[str] = []
        self.max_workers: int = DEFAULT_CONFIG["max_workers"]
        self.timeout: Optional[float] = None
        self.log_file: Optional[str] = None
        self.load_config(self.config_file)

    def load_config(self, config_file: Optional[Path] = None) -> None:
        """Load configuration from file.

        A file that is missing leaves the defaults in place. A file that
        cannot be parsed or holds invalid values is reported and replaced by
        the defaults.
        """
        self._merge_config(copy.deepcopy(DEFAULT_CONFIG))

        if config_file is None or not Path(config_file).exists():
            return
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                user_config = yaml.safe_load(f)
        except OSError as e:
            logger.error("Error reading config file %s: %s", config_file, e)
            return
        except yaml.YAMLError as e:
            logger.error("Error parsing config file %s: %s", config_file, e)
            self._reset()
            return

        if not user_config:
            return
        try:
            self._merge_config(user_config)
        except ValueError as e:
            logger.error("Invalid config file %s: %s", config_file, e)
            self._reset()

    def _reset(self) -> None:
        logger.warning("Resetting %s to defaults", self.config_file)
        self.config = {}
        self._merge_config(copy.deepcopy(DEFAULT_CONFIG))
        try:
            self.save()
        except OSError as e:
            logger.error("Could not rewrite config file %s: %s", self.config_file, e)

    def _merge_config(self, config: Dict[str, Any]) -> None:
        """Merge configuration with current configuration."""
        if not isinstance(config, dict):
            raise ValueError("Configuration must be a dictionary")

        if "base_path" in config:
            if not isinstance(config["base_path"], str) or not config["base_path"]:
                raise ValueError("base_path must be a non-empty string")
            self.base_path = config["base_path"]

        if "repos" in config:
            if not isinstance(config["repos"], list):
                raise ValueError("repos must be a list")
            for repo in config["repos"]:
                if not isinstance(repo, str):
                    raise ValueError(f"repo name {repo!r} must be a string")
            self.repos = _unique(config["repos"])

        if "max_workers" in config:
            workers = config["max_workers"]
            if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
                raise ValueError("max_workers must be a positive integer")
            self.max_workers = workers

        if "timeout" in config:
            timeout = config["timeout"]
            if timeout is not None and (
                isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0
            ):
                raise ValueError("timeout must be a positive number or null")
            self.timeout = timeout

        if "log_file" in config:
            if config["log_file"] is not None and not isinstance(config["log_file"], str):
                raise ValueError("log_file must be a string or null")
            self.log_file = config["log_file"]

        self.config.update(config)

    def validate(self) -> List[str]:
        """Validate configuration."""
        errors = []

        if not isinstance(self.base_path, str) or not self.base_path:
            errors.append("base_path must be a non-empty string")

        if not isinstance(self.repos, list):
            errors.append("repos must be a list")
        else:
            for repo in self.repos:
                if not isinstance(repo, str):
                    errors.append(f"repo name {repo} must be a string")
            if len(set(self.repos)) != len(self.repos):
                errors.append("repos must not contain duplicates")

        if not isinstance(self.max_workers, int) or self.max_workers < 1:
            errors.append("max_workers must be a positive integer")

        if self.timeout is not None and (
            not isinstance(self.timeout, (int, float)) or self.timeout <= 0
        ):
            errors.append("timeout must be a positive number or null")

        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Return the persisted form of the configuration."""
        return {
            "base_path": self.base_path,
            "repos": list(self.repos),
            "max_workers": self.max_workers,
            "timeout": self.timeout,
            "log_file": self.log_file,
        }

    def save(self) -> Path:
        """Write the configuration to :attr:`config_file` and return its path."""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)
        logger.debug("Saved configuration to %s", self.config_file)
        return self.config_file

    def set_repos(self, repos: Iterable[str]) -> None:
        """Replace the watched repository names, dropping duplicates."""
        self.repos = _unique(repos)
        self.config["repos"] = list(self.repos)

    def watched_set(self) -> WatchedRepositorySet:
        """Return an immutable snapshot of the watched repositories."""
        return WatchedRepositorySet(base_path=self.base_path, repo_names=tuple(self.repos))

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value.

        Args:
            key: The configuration key to get.
            default: The default value to return if the key is not found.

        Returns:
            The configuration value, or the default if not found.
        """
        return self.config.get(key, default)


def _unique(names: Iterable[str]) -> List[str]:
    seen = set()
    unique = []
    for name in names:
        if name not in seen:
            seen.add(name)
            unique.append(name)
    return unique
