"""Test configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
from git_helpers import make_repo

from grepo.core.config import Config
from grepo.core.memory import FakeRepository, InMemoryBackend


@pytest.fixture
def base_dir(tmp_path: Path) -> Path:
    """Directory the watched repositories are created under."""
    base = tmp_path / "repos"
    base.mkdir()
    return base


@pytest.fixture
def temp_git_repo(base_dir: Path) -> Path:
    """A repository with a single commit on ``main``."""
    return make_repo(base_dir, "git_repo")


@pytest.fixture
def memory_backend() -> InMemoryBackend:
    """An empty in-memory backend."""
    return InMemoryBackend()


@pytest.fixture
def memory_repo(memory_backend: InMemoryBackend) -> FakeRepository:
    """An in-memory repository at ``/repos/app`` with one commit on ``main``."""
    repo = memory_backend.create_repository("/repos/app")
    repo.commit("Initial commit")
    return repo


@pytest.fixture
def test_config(tmp_path: Path, base_dir: Path) -> Config:
    """A configuration stored in a temporary file and rooted at ``base_dir``."""
    config = Config(tmp_path / "config.yml")
    config.base_path = str(base_dir)
    config.save()
    return config
