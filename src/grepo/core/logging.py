"""Logging configuration for grepo.

Engine modules log through ``logging.getLogger(__name__)``: repositories
that are skipped during an aggregate operation are reported at WARNING,
per-repository progress at DEBUG. :func:`setup_logging` routes those records
to stderr through rich, and copies everything to ``log_file`` when the
config names one.
"""

import logging
import sys
from pathlib import Path
from types import TracebackType
from typing import Optional, Type

from rich.console import Console
from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [%(threadName)s] %(message)s"

# Diagnostics go to stderr so command output stays clean.
console = Console(stderr=True)

logger = logging.getLogger(__name__)


def _log_uncaught(
    exc_type: Type[BaseException],
    exc_value: BaseException,
    exc_traceback: Optional[TracebackType],
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger.critical("grepo crashed", exc_info=(exc_type, exc_value, exc_traceback))


def setup_logging(debug: bool = False, log_file: Optional[str] = None) -> None:
    """Configure the root logger for a grepo run.

    The console only shows skipped repositories and errors unless ``debug``
    is set, in which case per-repository progress and source locations are
    shown too. The log file, when given, always receives DEBUG records,
    tagged with the worker thread that produced them.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    root_logger.handlers.clear()

    console_handler = RichHandler(
        console=console,
        show_path=debug,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=debug,
    )
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root_logger.addHandler(file_handler)
        root_logger.setLevel(logging.DEBUG)
        logger.debug("Writing log to %s", log_path)

    sys.excepthook = _log_uncaught
