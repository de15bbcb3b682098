"""Test CLI commands."""

from pathlib import Path
from typing import List

import pytest
from click.testing import CliRunner, Result
from git_helpers import commit, init_repo, make_repo, run_git

from grepo.cli import cli
from grepo.core.config import Config


@pytest.fixture
def cli_runner() -> CliRunner:
    """Return a CLI runner."""
    return CliRunner()


@pytest.fixture
def invoke(cli_runner: CliRunner, test_config: Config):
    """Invoke the CLI against the temporary config file."""

    def _invoke(args: List[str], input: str = None) -> Result:
        return cli_runner.invoke(
            cli, ["--config", str(test_config.config_file), *args], input=input
        )

    return _invoke


def test_base_dir(invoke, base_dir: Path, test_config: Config) -> None:
    """Test showing and setting the base directory."""
    result = invoke(["base-dir"])
    assert result.exit_code == 0
    assert str(base_dir) in result.output

    result = invoke(["base-dir", "/elsewhere"])
    assert result.exit_code == 0
    assert "Updated base path" in result.output
    assert Config(test_config.config_file).base_path == "/elsewhere"


def test_config_path_and_show_config(invoke, test_config: Config) -> None:
    """Test the config inspection commands."""
    result = invoke(["config-path"])
    assert result.exit_code == 0
    assert str(test_config.config_file) in result.output.replace("\n", "")

    result = invoke(["show-config"])
    assert result.exit_code == 0
    assert "max_workers: 4" in result.output


def test_watch_commands(invoke, base_dir: Path, test_config: Config) -> None:
    """Test adding, listing and removing watched repositories."""
    make_repo(base_dir, "api")
    make_repo(base_dir, "web")

    result = invoke(["watch", "add", "api,web,nope"])
    assert result.exit_code == 0
    assert "Skipping nope: Not a valid repo" in result.output

    result = invoke(["watch", "list"])
    assert result.exit_code == 0
    assert "api" in result.output
    assert "web" in result.output

    result = invoke(["watch", "remove", "web,ghost"])
    assert result.exit_code == 0
    assert "Repo ghost is not found" in result.output
    assert Config(test_config.config_file).repos == ["api"]


def test_branch_commands(invoke, base_dir: Path, test_config: Config) -> None:
    """Test listing, searching and current branches."""
    make_repo(base_dir, "r1", branches=["feat/x"])
    make_repo(base_dir, "r2")
    test_config.set_repos(["r1", "r2"])
    test_config.save()

    result = invoke(["branch", "list"])
    assert result.exit_code == 0
    assert "Repo: r1" in result.output
    assert "feat/x" in result.output

    result = invoke(["branch", "search", "feat"])
    assert result.exit_code == 0
    assert "feat/x" in result.output
    assert "r2" not in result.output

    result = invoke(["branch", "search", "nothing-like-this"])
    assert result.exit_code == 0
    assert "No branches matching" in result.output

    result = invoke(["branch", "curr"])
    assert result.exit_code == 0
    assert "Repo: r2" in result.output
    assert "main" in result.output


def test_commit_search(invoke, base_dir: Path, test_config: Config) -> None:
    """Test searching commit messages."""
    repo_path = init_repo(base_dir / "app")
    commit(repo_path, "fix bug")
    commit(repo_path, "add feature")
    test_config.set_repos(["app"])
    test_config.save()

    result = invoke(["commit", "search", "fix"])
    assert result.exit_code == 0
    assert "fix bug" in result.output
    assert "add feature" not in result.output

    result = invoke(["commit", "search", "zzz"])
    assert result.exit_code == 0
    assert "No commits matching" in result.output


def test_commit_search_failure(invoke, base_dir: Path, test_config: Config) -> None:
    """Test that a branch that does not resolve to a commit fails the search."""
    repo_path = make_repo(base_dir, "app")
    commit(repo_path, "fix bug")
    tree = run_git(repo_path, "rev-parse", "HEAD^{tree}")
    (repo_path / ".git" / "refs" / "heads" / "x").write_text(tree + "\n")
    test_config.set_repos(["app"])
    test_config.save()

    result = invoke(["commit", "search", "fix"])

    assert result.exit_code == 1
    assert "Search aborted in app" in result.output
    assert "fix bug" not in result.output


def test_scan_base_dir(invoke, base_dir: Path, test_config: Config) -> None:
    """Test discovering repositories in the base directory."""
    make_repo(base_dir, "api")
    (base_dir / "notes").mkdir()

    result = invoke(["scan-base-dir"], input="n\n")
    assert result.exit_code == 0
    assert Config(test_config.config_file).repos == []

    result = invoke(["scan-base-dir", "--yes"])
    assert result.exit_code == 0
    assert "Skipping notes: Not a valid repo" in result.output
    assert Config(test_config.config_file).repos == ["api"]
