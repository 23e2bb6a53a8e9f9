"""Logging setup for the LERN orchestrator.

Console output is colored with colorlog unless disabled. Production also
writes a rotating ``orchestrator.log``; the test suite overwrites
``test/test.log`` on every run. The provider client libraries log each
request, so they stay at WARNING unless the orchestrator runs at DEBUG.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import colorlog

if TYPE_CHECKING:
    from .config import Settings

LOG_FORMAT = (
    "%(asctime)s %(levelname)8s %(message)s (%(name)s@%(filename)s:%(lineno)d)"
)
COLOR_LOG_FORMAT = (
    "%(asctime)s %(log_color)s%(levelname)8s%(reset)s %(message)s "
    "\033[90m(%(name)s@%(filename)s:%(lineno)d)\033[0m"
)
DATE_FORMAT = "%m-%d %H:%M:%S"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

# Client libraries that log every provider round-trip
NOISY_LOGGERS = ("httpx", "httpcore", "openai")

LOG_FILE = "orchestrator.log"
TEST_LOG_FILE = "test.log"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 4


def setup_logging(
    level: int | str = logging.INFO,
    use_colors: bool = True,
    log_file: Path | None = None,
    rotate: bool = True,
) -> None:
    """Configure the root logger.

    Args:
        level: Level number or name such as "DEBUG"
        use_colors: Whether console output is colored
        log_file: Also write records to this file
        rotate: Rotate ``log_file`` by size instead of overwriting it
    """
    handlers = [_console_handler(use_colors)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(_file_handler(log_file, rotate))

    logging.basicConfig(level=level, handlers=handlers, force=True)
    _quiet_client_libraries(logging.getLogger().level)


def configure_logging(settings: "Settings") -> None:
    """Set up logging for the configured environment.

    Under test the suite owns the logging setup, so nothing changes.
    """
    if settings.is_testing:
        return
    if settings.is_production:
        setup_production_logging(settings.log_level, Path(settings.log_dir))
    else:
        setup_logging(settings.log_level, use_colors=settings.log_colors)


def setup_production_logging(
    level: int | str = logging.INFO, log_dir: Path = Path("logs")
) -> None:
    """Plain console output plus a rotating ``orchestrator.log``."""
    setup_logging(level, use_colors=False, log_file=log_dir / LOG_FILE)


def setup_test_logging(
    level: int | str = logging.DEBUG, log_dir: Path = Path("logs")
) -> None:
    """Colored console output plus a ``test.log`` rewritten each run."""
    setup_logging(level, log_file=log_dir / "test" / TEST_LOG_FILE, rotate=False)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically called with __name__)."""
    return logging.getLogger(name)


def _quiet_client_libraries(level: int) -> None:
    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)


def _console_handler(use_colors: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    formatter: logging.Formatter
    if use_colors:
        formatter = colorlog.ColoredFormatter(
            COLOR_LOG_FORMAT, datefmt=DATE_FORMAT, log_colors=LOG_COLORS
        )
    else:
        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handler.setFormatter(formatter)
    return handler


def _file_handler(log_file: Path, rotate: bool) -> logging.Handler:
    handler: logging.Handler
    if rotate:
        handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUPS,
            encoding="utf-8",
        )
    else:
        handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler
