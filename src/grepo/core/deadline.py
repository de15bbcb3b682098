"""Time budget shared by the per-repository work of one engine call."""

from __future__ import annotations

import time
from typing import Optional

from .errors import SearchTimeoutError


class Deadline:
    """A point in time after which work should stop.

    A deadline built with ``seconds=None`` never expires.
    """

    def __init__(self, seconds: Optional[float] = None) -> None:
        self.seconds = seconds
        self._expires_at = None if seconds is None else time.monotonic() + seconds

    @classmethod
    def never(cls) -> "Deadline":
        return cls(None)

    def remaining(self) -> Optional[float]:
        """Seconds left, ``None`` when unbounded, never negative."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, repo_name: Optional[str] = None) -> None:
        """Raise :class:`SearchTimeoutError` once the deadline has passed."""
        if self.expired:
            raise SearchTimeoutError(repo_name)

    def __repr__(self) -> str:
        return f"Deadline(seconds={self.seconds!r}, remaining={self.remaining()!r})"
