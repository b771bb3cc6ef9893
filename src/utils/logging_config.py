"""Logging configuration for the NPC context engine."""

import logging
import sys
import time
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path

logger = logging.getLogger(__name__)

# Default log file location
DEFAULT_LOG_FILE = Path(__file__).parent.parent.parent / "output" / "logs" / "npc_context.log"

# Third-party loggers that flood DEBUG output with transport chatter
NOISY_LOGGERS = ("httpx", "httpcore", "ollama")

_LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(correlation_id)s] %(name)s: %(message)s"

_noisy_loggers_suppressed = False

# Correlation id of the current thread or task
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


class ContextFilter(logging.Filter):
    """Add context information to log records."""

    @property
    def correlation_id(self) -> str | None:
        """Correlation id active in the calling thread, if any."""
        return _correlation_id.get()

    def filter(self, record: logging.LogRecord) -> bool:
        """Add correlation ID to log record if available."""
        record.correlation_id = self.correlation_id or "-"
        return True


# Global context filter instance
_context_filter = ContextFilter()


class FlushingRotatingFileHandler(RotatingFileHandler):
    """RotatingFileHandler that flushes immediately after each log."""

    def emit(self, record: logging.LogRecord) -> None:
        super().emit(record)
        self.flush()


def _resolve_level(level: str) -> int:
    """Map a level name to its logging constant.

    Raises:
        ValueError: If the name is not a standard logging level.
    """
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Invalid log level: {level}")
    return resolved


def _suppress_noisy_loggers() -> None:
    """Pin third-party loggers to WARNING.

    Always re-applied so a caller can repair levels reset by library code,
    but only reported once per process.
    """
    global _noisy_loggers_suppressed
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if not _noisy_loggers_suppressed:
        logger.debug("Suppressing noisy third-party loggers: %s", ", ".join(NOISY_LOGGERS))
        _noisy_loggers_suppressed = True


def reset_logger_suppression() -> None:
    """Forget that noisy loggers were suppressed (used by tests)."""
    global _noisy_loggers_suppressed
    _noisy_loggers_suppressed = False


def setup_logging(level: str = "INFO", log_file: str | None = "default") -> None:
    """Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: File path for logs. "default" uses output/logs/npc_context.log,
                  None disables file logging.

    Raises:
        ValueError: If level is not a known logging level.
    """
    log_level = _resolve_level(level)

    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Note: Filter must be on HANDLERS, not logger, for child logger records
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(_context_filter)
    root_logger.addHandler(console_handler)

    if log_file == "default":
        log_path: Path | None = DEFAULT_LOG_FILE
    elif log_file:
        log_path = Path(log_file)
    else:
        log_path = None

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # Max 10MB per file, keep 5 backup files
        file_handler = FlushingRotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(_context_filter)
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging to file: {log_path} (max 10MB, 5 backups)")

    _suppress_noisy_loggers()


def set_log_level(level: str) -> None:
    """Change the root logger and handler levels at runtime.

    Args:
        level: New log level name.

    Raises:
        ValueError: If level is not a known logging level.
    """
    log_level = _resolve_level(level)
    root_logger = logging.getLogger()

    if root_logger.level == log_level:
        logger.debug("Log level already set to %s", level.upper())
        _suppress_noisy_loggers()
        return

    logger.info("Log level changed to %s", level.upper())
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers:
        handler.setLevel(log_level)
    _suppress_noisy_loggers()


@contextmanager
def log_context(correlation_id: str | None = None) -> Generator[str]:
    """Context manager for setting correlation ID in logs.

    The id is scoped to the calling thread, so concurrent jobs keep their own.

    Args:
        correlation_id: Optional correlation ID. If not provided, generates a new UUID.

    Yields:
        The correlation ID being used.

    Example:
        with log_context("discovery-run"):
            logger.info("Discovering relationships")  # Will include correlation_id
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())[:8]

    token = _correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)


@contextmanager
def log_performance(logger: logging.Logger, operation: str) -> Generator[None]:
    """Context manager for logging operation performance.

    Args:
        logger: Logger instance to use
        operation: Name of the operation being timed
    """
    start_time = time.perf_counter()
    logger.info(f"{operation}: Starting")
    try:
        yield
    except Exception as e:
        duration = time.perf_counter() - start_time
        logger.error(f"{operation}: Failed after {duration:.2f}s - {e}")
        raise
    else:
        duration = time.perf_counter() - start_time
        logger.info(f"{operation}: Completed in {duration:.2f}s")
