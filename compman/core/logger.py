"""Logging for compman.

Every compman logger writes through a RichHandler bound to one shared
Console. The CLI draws its tables and the update progress bar on that same
console, so a warning emitted mid-update is printed above the live bar
instead of tearing it.

File logging is opt-in and attaches a single handler to the top-level
``compman`` logger; child loggers propagate into it.
"""
import logging
import os
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

console = Console()

LOG_DIR = Path.home() / ".cache" / "compman"
LOG_FILE = LOG_DIR / "compman.log"
FALLBACK_LOG_FILE = Path("/tmp/compman.log")
LOG_FILE_ENV = "COMPMAN_LOG_FILE"

FILE_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"

_file_handler: Optional[logging.FileHandler] = None


def _level(verbose: bool) -> int:
    return logging.DEBUG if verbose else logging.INFO


def resolve_log_file(log_file: Optional[str] = None) -> Path:
    """Pick the log file: explicit argument, then $COMPMAN_LOG_FILE, then the cache dir."""
    chosen = log_file or os.environ.get(LOG_FILE_ENV)
    return Path(chosen).expanduser() if chosen else LOG_FILE


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> Path:
    """Attach the compman file handler, once per process.

    Later calls keep the existing file and only change its level, so a
    verbose command after a quiet one still gets its debug records.

    Args:
        log_file: Path to log file (see resolve_log_file for the default)
        verbose: Record DEBUG as well as INFO

    Returns:
        Path the handler writes to
    """
    global _file_handler

    if _file_handler is not None:
        _file_handler.setLevel(_level(verbose))
        return Path(_file_handler.baseFilename)

    target = resolve_log_file(log_file)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        target = FALLBACK_LOG_FILE

    handler = logging.FileHandler(target, encoding="utf-8")
    handler.setLevel(_level(verbose))
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    package_logger = logging.getLogger("compman")
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)
    _file_handler = handler

    package_logger.debug(f"Writing log to {target}")
    return target


def set_console_level(verbose: bool = False) -> None:
    """Switch every compman logger between INFO and DEBUG."""
    level = _level(verbose)
    for name, candidate in logging.root.manager.loggerDict.items():
        if name.startswith("compman.") and isinstance(candidate, logging.Logger):
            candidate.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Logger for a compman module, printing to the shared console."""
    logger = logging.getLogger(name)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger
