"""Git backends used by the grepo engine.

The engine only talks to :class:`GitBackend`. :class:`GitCliBackend` reads
repositories by running the ``git`` executable; the in-memory backend in
:mod:`grepo.core.memory` serves unit tests of the traversal logic.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .deadline import Deadline
from .errors import GitCommandError, SearchTimeoutError
from .models import Commit, CommitNode, HeadKind, HeadState

logger = logging.getLogger(__name__)

HEADS_PREFIX = b"refs/heads/"

# Field and record separators for ``git log`` output.
_FIELD_SEP = "\x1f"
_LOG_FORMAT = "%H%x1f%P%x1f%ct%x1f%an <%ae>%x1f%B"
_READ_SIZE = 64 * 1024


class GitBackend(ABC):
    """Read-only capabilities the engine needs from a version-control backend."""

    @abstractmethod
    def open_repository(self, path: Path, deadline: Optional[Deadline] = None) -> Any:
        """Open the repository rooted exactly at ``path`` and return a handle.

        Raises:
            GitCommandError: If ``path`` is not a repository.
        """

    @abstractmethod
    def list_local_branches(self, handle: Any, deadline: Optional[Deadline] = None) -> List[bytes]:
        """Return raw local branch names (without ``refs/heads/``)."""

    @abstractmethod
    def current_head(self, handle: Any, deadline: Optional[Deadline] = None) -> HeadState:
        """Resolve HEAD.

        Raises:
            GitCommandError: If HEAD exists but cannot be resolved.
        """

    @abstractmethod
    def resolve_branch(
        self, handle: Any, branch_name: str, deadline: Optional[Deadline] = None
    ) -> str:
        """Return the tip commit id of a local branch.

        Raises:
            GitCommandError: If the branch does not resolve to a commit.
        """

    @abstractmethod
    def ancestry(
        self, handle: Any, tip: str, deadline: Optional[Deadline] = None
    ) -> Iterator[CommitNode]:
        """Yield every commit reachable from ``tip``, each exactly once, in any order."""


def run_git_command(
    repo_path: Path,
    command: Sequence[str],
    error_message: str,
    check: bool = True,
    deadline: Optional[Deadline] = None,
    env: Optional[Dict[str, str]] = None,
) -> "subprocess.CompletedProcess[bytes]":
    """Run a git command in ``repo_path`` and return the raw completed process.

    Output is kept as bytes so callers decide how strictly to decode it.

    Raises:
        GitCommandError: If git cannot be run, or exits non-zero and ``check`` is set.
        SearchTimeoutError: If ``deadline`` expires before git finishes.
    """
    timeout = deadline.remaining() if deadline is not None else None
    if timeout is not None and timeout <= 0:
        raise SearchTimeoutError(repo_path.name)
    full_command = ["git", "-C", str(repo_path)] + list(command)
    try:
        result = subprocess.run(
            full_command,
            capture_output=True,
            check=False,
            timeout=timeout,
            env=env,
        )
    except subprocess.TimeoutExpired:
        raise SearchTimeoutError(repo_path.name)
    except OSError as e:
        raise GitCommandError(
            message=error_message,
            command=" ".join(["git"] + list(command)),
            output=str(e),
        ) from e
    if check and result.returncode != 0:
        raise GitCommandError(
            message=error_message,
            command=" ".join(["git"] + list(command)),
            output=result.stderr.decode("utf-8", errors="replace").strip(),
            returncode=result.returncode,
        )
    return result


def stream_git_records(
    repo_path: Path,
    command: Sequence[str],
    error_message: str,
    separator: bytes = b"\x00",
    deadline: Optional[Deadline] = None,
    env: Optional[Dict[str, str]] = None,
) -> Iterator[bytes]:
    """Run a git command and yield its output split on ``separator`` as it is read.

    The process is killed if the caller stops iterating early.

    Raises:
        GitCommandError: If git cannot be run or exits non-zero.
        SearchTimeoutError: If ``deadline`` expires before git finishes.
    """
    if deadline is not None:
        deadline.check(repo_path.name)
    full_command = ["git", "-C", str(repo_path)] + list(command)
    display = " ".join(["git"] + list(command))
    with tempfile.TemporaryFile() as stderr:
        try:
            process = subprocess.Popen(full_command, stdout=subprocess.PIPE, stderr=stderr, env=env)
        except OSError as e:
            raise GitCommandError(message=error_message, command=display, output=str(e)) from e
        try:
            pending = b""
            while True:
                chunk = process.stdout.read1(_READ_SIZE)
                if not chunk:
                    break
                *records, pending = (pending + chunk).split(separator)
                for record in records:
                    if deadline is not None:
                        deadline.check(repo_path.name)
                    yield record
            timeout = deadline.remaining() if deadline is not None else None
            returncode = process.wait(timeout=timeout)
            if returncode != 0:
                stderr.seek(0)
                raise GitCommandError(
                    message=error_message,
                    command=display,
                    output=stderr.read().decode("utf-8", errors="replace").strip(),
                    returncode=returncode,
                )
            if pending:
                yield pending
        except subprocess.TimeoutExpired:
            raise SearchTimeoutError(repo_path.name)
        finally:
            if process.poll() is None:
                process.kill()
            process.stdout.close()
            process.wait()


class GitCliBackend(GitBackend):
    """Backend that shells out to the ``git`` executable.

    Handles are resolved :class:`~pathlib.Path` objects. Repository discovery
    is limited to the given directory itself so that a plain directory nested
    inside some other working copy is not mistaken for a repository.
    """

    def _env(self, path: Path) -> Dict[str, str]:
        env = {k: v for k, v in os.environ.items() if not k.startswith("GIT_")}
        env["GIT_CEILING_DIRECTORIES"] = str(path.parent)
        env["GIT_TERMINAL_PROMPT"] = "0"
        env["LC_ALL"] = "C"
        return env

    def _git(
        self,
        path: Path,
        command: Sequence[str],
        error_message: str,
        check: bool = True,
        deadline: Optional[Deadline] = None,
    ) -> "subprocess.CompletedProcess[bytes]":
        return run_git_command(
            path, command, error_message, check=check, deadline=deadline, env=self._env(path)
        )

    def open_repository(self, path: Path, deadline: Optional[Deadline] = None) -> Path:
        path = Path(path).expanduser().resolve()
        if not path.exists():
            raise GitCommandError("Repository path does not exist", "open", str(path))
        if not path.is_dir():
            raise GitCommandError("Repository path is not a directory", "open", str(path))
        if not os.access(path, os.R_OK | os.X_OK):
            raise GitCommandError("Repository path is not readable", "open", str(path))
        self._git(path, ["rev-parse", "--git-dir"], "Not a git repository", deadline=deadline)
        logger.debug("Opened repository at %s", path)
        return path

    def list_local_branches(self, handle: Path, deadline: Optional[Deadline] = None) -> List[bytes]:
        result = self._git(
            handle,
            ["for-each-ref", "--format=%(refname)", "refs/heads/"],
            "Failed to list branches",
            deadline=deadline,
        )
        names = []
        for line in result.stdout.splitlines():
            if line.startswith(HEADS_PREFIX):
                names.append(line[len(HEADS_PREFIX):])
        return names

    def current_head(self, handle: Path, deadline: Optional[Deadline] = None) -> HeadState:
        symbolic = self._git(
            handle,
            ["symbolic-ref", "-q", "HEAD"],
            "Failed to read HEAD",
            check=False,
            deadline=deadline,
        )
        if symbolic.returncode == 0:
            ref = symbolic.stdout.strip()
            if not ref.startswith(HEADS_PREFIX):
                raise GitCommandError(
                    "HEAD points outside refs/heads",
                    "symbolic-ref HEAD",
                    ref.decode("utf-8", errors="replace"),
                )
            ref_name = ref.decode("utf-8")
            name = ref_name[len("refs/heads/"):]
            commit_id = self._verify(handle, ref_name, deadline)
            if commit_id is not None:
                return HeadState(HeadKind.BRANCH, branch_name=name, commit_id=commit_id)
            # A missing ref is an unborn branch; a dangling one is corruption.
            if self._ref_exists(handle, ref_name, deadline):
                raise GitCommandError(
                    "HEAD branch does not resolve to a commit",
                    f"rev-parse --verify {ref_name}^{{commit}}",
                    f"{ref_name} points at a missing or non-commit object",
                )
            return HeadState(HeadKind.UNBORN, branch_name=name)
        if symbolic.returncode == 1:
            # Not a symbolic ref: HEAD is detached.
            return HeadState(HeadKind.DETACHED, commit_id=self._verify(handle, "HEAD", deadline))
        raise GitCommandError(
            "Failed to read HEAD",
            "symbolic-ref -q HEAD",
            symbolic.stderr.decode("utf-8", errors="replace").strip(),
            returncode=symbolic.returncode,
        )

    def _verify(self, handle: Path, rev: str, deadline: Optional[Deadline]) -> Optional[str]:
        result = self._git(
            handle,
            ["rev-parse", "-q", "--verify", f"{rev}^{{commit}}"],
            f"Failed to verify {rev}",
            check=False,
            deadline=deadline,
        )
        if result.returncode != 0:
            return None
        return result.stdout.decode("ascii").strip()

    def _ref_exists(self, handle: Path, ref: str, deadline: Optional[Deadline]) -> bool:
        # Unpeeled lookup: succeeds even when the target object is missing.
        result = self._git(
            handle,
            ["rev-parse", "-q", "--verify", ref],
            f"Failed to look up {ref}",
            check=False,
            deadline=deadline,
        )
        return result.returncode == 0

    def resolve_branch(
        self, handle: Path, branch_name: str, deadline: Optional[Deadline] = None
    ) -> str:
        commit_id = self._verify(handle, f"refs/heads/{branch_name}", deadline)
        if commit_id is None:
            raise GitCommandError(
                f"Branch {branch_name} does not resolve to a commit",
                f"rev-parse --verify refs/heads/{branch_name}",
                "",
            )
        return commit_id

    def ancestry(
        self, handle: Path, tip: str, deadline: Optional[Deadline] = None
    ) -> Iterator[CommitNode]:
        records = stream_git_records(
            handle,
            [
                "log",
                "-z",
                "--no-color",
                "--no-show-signature",
                f"--format={_LOG_FORMAT}",
                tip,
                "--",
            ],
            f"Failed to read history of {tip}",
            deadline=deadline,
            env=self._env(handle),
        )
        for record in records:
            if not record.strip():
                continue
            yield parse_log_record(record.decode("utf-8", errors="replace"))


def parse_log_record(record: str) -> CommitNode:
    """Parse one ``git log`` record produced with the backend's format."""
    fields = record.lstrip("\n").split(_FIELD_SEP, 4)
    if len(fields) != 5:
        raise GitCommandError("Unexpected git log output", "log", record[:200])
    commit_id, parents, timestamp, author, message = fields
    return CommitNode(
        commit=Commit(id=commit_id, author=author, message=message.rstrip("\n")),
        parents=tuple(parents.split()),
        timestamp=int(timestamp) if timestamp else 0,
    )
