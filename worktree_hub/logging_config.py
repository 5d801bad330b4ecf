"""Logging configuration for worktree-hub"""
import logging
import sys
from pathlib import Path

LOG_DIR_NAME = ".worktree-hub"
LOG_FILE_NAME = "worktree-hub.log"

FILE_FORMAT = '%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s'
DEBUG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
PLAIN_FORMAT = '[%(name)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Loggers too chatty to follow the console level
NOISY_LOGGERS = ("git", "httpx", "httpcore", "asyncio")


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name when stderr is a terminal."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        color = self.COLORS.get(record.levelname)
        if color is None or not sys.stderr.isatty():
            return super().format(record)
        # Copy so other handlers still see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def get_log_file() -> Path:
    """Return the path of the log file used in TUI and debug mode."""
    return Path.home() / LOG_DIR_NAME / LOG_FILE_NAME


def console_level(verbose: bool = False, debug: bool = False, quiet: bool = False) -> int:
    """Pick the console level; debug wins over verbose, which wins over quiet."""
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    if quiet:
        return logging.ERROR
    return logging.WARNING


def _file_handler() -> logging.Handler:
    log_file = get_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _console_handler(level: int, debug: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if debug:
        handler.setFormatter(ColoredFormatter(fmt=DEBUG_FORMAT, datefmt=DATE_FORMAT))
    else:
        handler.setFormatter(ColoredFormatter(fmt=PLAIN_FORMAT))
    return handler


def setup_logging(
    verbose: bool = False, debug: bool = False, tui_mode: bool = False, quiet: bool = False
) -> None:
    """
    Configure the root logger for a CLI or TUI run.

    Args:
        verbose: Show INFO messages on the console
        debug: Show DEBUG messages with timestamps, and write the log file
        tui_mode: Write the log file and skip the console handler, since the
            TUI owns the terminal
        quiet: Only show errors on the console
    """
    level = console_level(verbose, debug, quiet)
    to_file = tui_mode or debug

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    # Handlers filter on their own; the root must let the file see everything
    root_logger.setLevel(logging.DEBUG if to_file else level)

    if to_file:
        root_logger.addHandler(_file_handler())
    if not tui_mode:
        root_logger.addHandler(_console_handler(level, debug))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger named after the module, without the package prefix."""
    for prefix in ('worktree_hub.', 'services.'):
        if name.startswith(prefix):
            name = name[len(prefix):]
    return logging.getLogger(name)
