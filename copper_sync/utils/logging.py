"""
Logging configuration module for copper_sync.

All modules log through the ``copper_sync`` logger hierarchy. The CLI
attaches two handlers to it:
- a console handler on stderr, colored when the terminal allows it
- a daily file handler under ``~/.copper-sync/logs`` (or ``log_dir``)
  capturing DEBUG

Levels come from COPPER_SYNC_LOG_LEVEL / COPPER_SYNC_DEBUG unless the CLI
passes one; COPPER_SYNC_LOG_FILE overrides or disables the log file.
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from copper_sync.utils.paths import DEFAULT_CONFIG_DIR

# Console format for normal runs
CONSOLE_FORMAT = "%(levelname)s: %(message)s"

# Detailed format for --verbose and the log file. Upserts run on worker
# threads, so the thread name is included.
VERBOSE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] "
    "[%(filename)s:%(lineno)d] - %(message)s"
)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ENV_LOG_LEVEL = "COPPER_SYNC_LOG_LEVEL"
ENV_DEBUG = "COPPER_SYNC_DEBUG"
ENV_LOG_FILE = "COPPER_SYNC_LOG_FILE"

ROOT_LOGGER_NAME = "copper_sync"

LOG_FILE_PREFIX = "copper_sync_"

DEFAULT_LOG_DIR = DEFAULT_CONFIG_DIR / "logs"

# COPPER_SYNC_LOG_FILE values that turn file logging off
DISABLED_LOG_FILE_VALUES = ("none", "disabled", "")

LEVEL_NAMES = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Directory chosen by the last setup_logging call, used by cleanup_old_logs
_active_log_dir: Optional[Path] = None


class ColoredFormatter(logging.Formatter):
    """
    Formatter that wraps the level name and message in ANSI colors.

    Colors are dropped when stdout is not a tty, NO_COLOR is set, or
    TERM is ``dumb``.
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and self._terminal_has_color()

    @staticmethod
    def _terminal_has_color() -> bool:
        if not getattr(sys.stdout, "isatty", None) or not sys.stdout.isatty():
            return False
        # https://no-color.org/
        if os.environ.get("NO_COLOR"):
            return False
        return os.environ.get("TERM", "") != "dumb"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname) if self.use_colors else None
        if color is None:
            return super().format(record)

        # Color a copy so the file handler sees the plain record
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        colored.msg = f"{color}{record.msg}{self.RESET}"
        return super().format(colored)


def get_log_level_from_env() -> int:
    """
    Read the log level from the environment.

    COPPER_SYNC_DEBUG (1/true/yes) wins over COPPER_SYNC_LOG_LEVEL; an
    unknown level name falls back to INFO.
    """
    if os.environ.get(ENV_DEBUG, "").lower() in ("1", "true", "yes"):
        return logging.DEBUG
    return LEVEL_NAMES.get(os.environ.get(ENV_LOG_LEVEL, "INFO").upper(), logging.INFO)


def _daily_log_name() -> str:
    return f"{LOG_FILE_PREFIX}{datetime.now().strftime('%Y%m%d')}.log"


def get_log_file_path() -> Optional[Path]:
    """
    Resolve the log file when the CLI names no log directory.

    Returns:
        Path to the log file, or None when file logging is disabled
    """
    override = os.environ.get(ENV_LOG_FILE)
    if override is not None:
        if override.lower() in DISABLED_LOG_FILE_VALUES:
            return None
        return Path(override)

    return DEFAULT_LOG_DIR / _daily_log_name()


def _console_handler(level: int, verbose: bool, use_colors: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    fmt = VERBOSE_FORMAT if verbose else CONSOLE_FORMAT
    if use_colors:
        handler.setFormatter(ColoredFormatter(fmt, DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(fmt, DATE_FORMAT))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(VERBOSE_FORMAT, DATE_FORMAT))
    return handler


def setup_logging(
    level: Optional[int] = None,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    log_file: Optional[Path] = None,
    enable_file_logging: bool = True,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure the copper_sync logger. Safe to call more than once; earlier
    handlers are replaced.

    Args:
        level: Console level; read from the environment when None
        verbose: Force DEBUG and use the detailed console format
        log_dir: Directory for the daily log file
        log_file: Explicit log file, taking precedence over log_dir
        enable_file_logging: Set False to log to the console only
        use_colors: Color console output when the terminal supports it

    Returns:
        The ``copper_sync`` logger
    """
    global _active_log_dir

    if verbose:
        level = logging.DEBUG
    elif level is None:
        level = get_log_level_from_env()

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()
    # Root handlers would print every record twice
    logger.propagate = False

    logger.addHandler(_console_handler(level, verbose, use_colors))

    file_path = None
    if enable_file_logging:
        if log_file:
            file_path = log_file
        elif log_dir:
            file_path = log_dir / _daily_log_name()
        else:
            file_path = get_log_file_path()
    if file_path is not None:
        try:
            logger.addHandler(_file_handler(file_path))
            logger.debug(f"Log file: {file_path}")
        except OSError as e:
            logger.warning(f"Could not create log file {file_path}: {e}")

    _active_log_dir = log_file.parent if log_file else log_dir
    return logger


def cleanup_old_logs(log_dir: Optional[Path] = None, keep_count: int = 10) -> int:
    """
    Delete all but the newest ``keep_count`` copper_sync_*.log files.

    Args:
        log_dir: Directory to prune; defaults to the directory chosen by
            setup_logging, then ~/.copper-sync/logs
        keep_count: Files to keep; 0 disables pruning

    Returns:
        Number of files deleted
    """
    if keep_count <= 0:
        return 0

    directory = log_dir or _active_log_dir or DEFAULT_LOG_DIR
    if not directory.is_dir():
        return 0

    logs = sorted(
        directory.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    deleted = 0
    for stale in logs[keep_count:]:
        try:
            stale.unlink()
        except OSError as e:
            logging.getLogger(__name__).debug(f"Could not remove {stale}: {e}")
            continue
        deleted += 1
    return deleted


def get_logger(name: str) -> logging.Logger:
    """Return ``name`` as a child of the copper_sync logger hierarchy."""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


__all__ = [
    "setup_logging",
    "get_logger",
    "cleanup_old_logs",
    "ColoredFormatter",
    "get_log_level_from_env",
    "get_log_file_path",
    "DEFAULT_LOG_DIR",
    "CONSOLE_FORMAT",
    "VERBOSE_FORMAT",
    "DATE_FORMAT",
]
