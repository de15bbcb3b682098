"""Test logging setup."""

import logging
import sys
from pathlib import Path

import pytest
from rich.logging import RichHandler

from grepo.core.logging import setup_logging


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch: pytest.MonkeyPatch):
    """Drop the handlers installed by a test and restore the excepthook."""
    root_logger = logging.getLogger()
    level = root_logger.level
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    yield
    for handler in list(root_logger.handlers):
        if isinstance(handler, (RichHandler, logging.FileHandler)):
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(level)


def test_console_shows_warnings_by_default() -> None:
    """Test that only skipped repositories and errors reach the console."""
    setup_logging()
    handlers = logging.getLogger().handlers

    assert len(handlers) == 1
    assert isinstance(handlers[0], RichHandler)
    assert handlers[0].level == logging.WARNING


def test_debug_console() -> None:
    """Test that debug mode shows progress records on the console."""
    setup_logging(debug=True)
    assert logging.getLogger().handlers[0].level == logging.DEBUG


def test_log_file_receives_debug_records(tmp_path: Path) -> None:
    """Test that the log file gets debug records tagged with the thread name."""
    log_file = tmp_path / "logs" / "grepo.log"
    setup_logging(log_file=str(log_file))

    logging.getLogger("grepo.core.search").debug("12 matching commits in app")
    for handler in logging.getLogger().handlers:
        handler.flush()

    content = log_file.read_text(encoding="utf-8")
    assert "12 matching commits in app" in content
    assert "grepo.core.search" in content
    assert "MainThread" in content


def test_uncaught_exceptions_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    """Test that the installed excepthook logs instead of printing."""
    setup_logging()
    logging.getLogger().addHandler(caplog.handler)

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        sys.excepthook(*sys.exc_info())

    assert "grepo crashed" in caplog.text
