"""Test branch enumeration and HEAD resolution."""

from pathlib import Path

import pytest
from git_helpers import commit, init_repo, make_repo, run_git, watched

from grepo.core.branch import BranchCatalog, current_branch_name, list_local_branches
from grepo.core.errors import BranchResolutionError, HeadResolutionError
from grepo.core.memory import FakeRepository, InMemoryBackend
from grepo.core.models import NO_BRANCH, Branch, HeadKind, WatchedRepositorySet
from grepo.core.repository import open_repository


def test_list_local_branches(base_dir: Path) -> None:
    """Test that exactly the repository's own local branches are listed."""
    repo_path = make_repo(base_dir, "app", branches=["A", "B", "C"])
    run_git(repo_path, "checkout", "-q", "A")
    run_git(repo_path, "branch", "-D", "main")

    ref = open_repository(watched(base_dir, "app"), "app")
    names = {b.branch_name for b in list_local_branches(ref)}

    assert names == {"A", "B", "C"}
    assert names == set(run_git(repo_path, "branch", "--format=%(refname:short)").splitlines())


def test_list_local_branches_excludes_remotes_and_tags(base_dir: Path) -> None:
    """Test that remote-tracking branches and tags are not listed."""
    upstream = make_repo(base_dir, "upstream", branches=["feature"])
    run_git(base_dir, "clone", "-q", str(upstream), "clone")
    run_git(base_dir / "clone", "tag", "v1.0")

    ref = open_repository(watched(base_dir, "clone"), "clone")
    branches = list_local_branches(ref)

    assert branches == [Branch(repo_name="clone", branch_name="main")]


def test_list_branches_with_slashes(base_dir: Path) -> None:
    """Test that hierarchical branch names keep their full short name."""
    make_repo(base_dir, "app", branches=["feat/login", "fix/crash"])
    ref = open_repository(watched(base_dir, "app"), "app")
    names = {b.branch_name for b in list_local_branches(ref)}
    assert names == {"main", "feat/login", "fix/crash"}


def test_fresh_repository(base_dir: Path) -> None:
    """Test that a repository without commits has no branches and no current branch."""
    init_repo(base_dir / "fresh")
    ref = open_repository(watched(base_dir, "fresh"), "fresh")

    assert list_local_branches(ref) == []
    assert current_branch_name(ref) == NO_BRANCH


def test_current_branch(base_dir: Path) -> None:
    """Test resolving the checked-out branch."""
    repo_path = make_repo(base_dir, "app", branches=["develop"])
    ref = open_repository(watched(base_dir, "app"), "app")
    assert current_branch_name(ref) == "main"

    run_git(repo_path, "checkout", "-q", "develop")
    assert current_branch_name(ref) == "develop"


def test_detached_head(base_dir: Path) -> None:
    """Test that a detached HEAD is reported as not on a branch."""
    repo_path = make_repo(base_dir, "app")
    first = run_git(repo_path, "rev-parse", "HEAD")
    commit(repo_path, "Second commit")
    run_git(repo_path, "checkout", "-q", first)

    ref = open_repository(watched(base_dir, "app"), "app")
    state = BranchCatalog().head_state(ref)

    assert state.kind is HeadKind.DETACHED
    assert state.commit_id == first
    assert current_branch_name(ref) == NO_BRANCH


def test_head_outside_heads_is_an_error(base_dir: Path) -> None:
    """Test that HEAD pointing at a non-branch reference is a resolution failure."""
    repo_path = make_repo(base_dir, "app")
    run_git(repo_path, "tag", "v1.0")
    (repo_path / ".git" / "HEAD").write_text("ref: refs/tags/v1.0\n")

    ref = open_repository(watched(base_dir, "app"), "app")
    with pytest.raises(HeadResolutionError) as exc_info:
        current_branch_name(ref)
    assert exc_info.value.repo_name == "app"


@pytest.mark.parametrize("target", ["missing", "tree"])
def test_head_branch_with_dangling_tip_is_an_error(base_dir: Path, target: str) -> None:
    """Test that a HEAD branch whose ref does not reach a commit is not reported as unborn."""
    repo_path = make_repo(base_dir, "app")
    if target == "missing":
        tip = "0123456789abcdef0123456789abcdef01234567"
    else:
        tip = run_git(repo_path, "rev-parse", "HEAD^{tree}")
    (repo_path / ".git" / "refs" / "heads" / "main").write_text(tip + "\n")

    ref = open_repository(watched(base_dir, "app"), "app")
    with pytest.raises(HeadResolutionError) as exc_info:
        current_branch_name(ref)
    assert exc_info.value.repo_name == "app"


def test_unborn_branch_is_not_an_error(base_dir: Path) -> None:
    """Test that HEAD naming a branch that was never created is still unborn."""
    repo_path = make_repo(base_dir, "app")
    run_git(repo_path, "symbolic-ref", "HEAD", "refs/heads/orphaned")

    ref = open_repository(watched(base_dir, "app"), "app")
    state = BranchCatalog().head_state(ref)

    assert state.kind is HeadKind.UNBORN
    assert state.branch_name == "orphaned"
    assert current_branch_name(ref) == NO_BRANCH


def _memory_ref(backend: InMemoryBackend):
    return open_repository(WatchedRepositorySet("/repos", ("app",)), "app", backend)


def test_memory_unborn_branch(memory_backend: InMemoryBackend) -> None:
    """Test that an unborn HEAD is a valid state."""
    memory_backend.create_repository("/repos/app")
    ref = _memory_ref(memory_backend)
    catalog = BranchCatalog(memory_backend)

    assert catalog.head_state(ref).kind is HeadKind.UNBORN
    assert catalog.current_branch_name(ref) == NO_BRANCH


def test_memory_broken_head(memory_backend: InMemoryBackend, memory_repo: FakeRepository) -> None:
    """Test that an unresolvable HEAD raises instead of returning the sentinel."""
    memory_repo.broken_head = True
    with pytest.raises(HeadResolutionError):
        BranchCatalog(memory_backend).current_branch_name(_memory_ref(memory_backend))


def test_memory_head_branch_without_commit(
    memory_backend: InMemoryBackend, memory_repo: FakeRepository
) -> None:
    """Test that a HEAD branch pointing at an unknown commit raises."""
    memory_repo.branches["main"] = "f" * 40
    with pytest.raises(HeadResolutionError):
        BranchCatalog(memory_backend).current_branch_name(_memory_ref(memory_backend))


def test_memory_undecodable_branch_name(
    memory_backend: InMemoryBackend, memory_repo: FakeRepository
) -> None:
    """Test that a branch name that is not UTF-8 raises a resolution error."""
    memory_repo.create_branch(b"bad-\xff-name")
    with pytest.raises(BranchResolutionError) as exc_info:
        BranchCatalog(memory_backend).list_local_branches(_memory_ref(memory_backend))
    assert exc_info.value.repo_name == "app"
    assert exc_info.value.branch_name is None


def test_memory_branch_order_is_backend_order(
    memory_backend: InMemoryBackend, memory_repo: FakeRepository
) -> None:
    """Test that branches are returned in the order the backend yields them."""
    memory_repo.create_branch("zeta")
    memory_repo.create_branch("alpha")
    branches = BranchCatalog(memory_backend).list_local_branches(_memory_ref(memory_backend))
    assert [b.branch_name for b in branches] == ["main", "zeta", "alpha"]
