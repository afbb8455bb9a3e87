"""
Structured logging and the error hierarchy shared by every layer.

Loggers come from ``get_logger(name, LogContext.X)``; keyword arguments to
the log methods end up as fields of the JSON line written by
``StructuredFormatter``. All domain errors derive from ``TmuxManagerError``.
"""

import functools
import json
import logging
import sys
import time
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any


class LogLevel(str, Enum):
    """Log level enumeration for type safety."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogContext(str, Enum):
    """Log context categories for structured logging."""

    SESSION = "session"
    GIT = "git"
    TMUX = "tmux"
    TERMINAL = "terminal"
    PROCESS = "process"
    WEB = "web"
    CLI = "cli"


class TmuxManagerError(Exception):
    """Base exception class for all claude-tmux-manager errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)


class SessionError(TmuxManagerError):
    """Errors related to session orchestration."""

    pass


class SessionExistsError(SessionError):
    """A session is already registered for the identity."""

    pass


class SessionNotFoundError(SessionError):
    """No session is registered for the identity."""

    pass


class SessionValidationError(TmuxManagerError):
    """Invalid project/feature identifiers or paths."""

    pass


class WorktreeError(TmuxManagerError):
    """Errors related to git worktree provisioning."""

    pass


class TmuxError(TmuxManagerError):
    """Errors related to tmux session and window management."""

    pass


class ConfigurationError(TmuxManagerError):
    """Errors related to configuration and setup."""

    pass


# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """One JSON object per line: fixed fields first, then the record's extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        )

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=str)


class ContextualLogger:
    """Wraps a stdlib logger; keyword arguments become structured fields.

    Every record carries ``context`` (the LogContext value) plus any fields
    bound with :meth:`bind`.
    """

    def __init__(
        self, name: str, context: LogContext, bound: dict[str, Any] | None = None
    ):
        self.logger = logging.getLogger(name)
        self.context = context
        self.bound = dict(bound or {})

    def bind(self, **fields: Any) -> "ContextualLogger":
        """Logger that adds ``fields`` to every record it emits."""
        return ContextualLogger(
            self.logger.name, self.context, {**self.bound, **fields}
        )

    def _log(
        self,
        level: int,
        message: str,
        fields: dict[str, Any],
        exc_info: BaseException | None = None,
    ) -> None:
        extra = {"context": self.context.value, **self.bound, **fields}
        self.logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, exception: Exception | None = None, **kwargs) -> None:
        """Log an error, with the traceback of ``exception`` when given."""
        self._log(logging.ERROR, message, kwargs, exc_info=exception)


def get_logger(name: str, context: LogContext) -> ContextualLogger:
    """Get a contextual logger instance."""
    return ContextualLogger(name, context)


def setup_logging(
    log_level: str | LogLevel = LogLevel.INFO,
    log_file: Path | None = None,
    enable_structured: bool = True,
    enable_console: bool = True,
) -> None:
    """
    Configure the root logger, replacing any handlers already installed.

    Args:
        log_level: Minimum log level to capture
        log_file: Optional file path for log output
        enable_structured: Use JSON structured logging format
        enable_console: Log to stderr; stdout stays free for command output
    """
    level_name = log_level.value if isinstance(log_level, LogLevel) else log_level.upper()
    formatter = (
        StructuredFormatter()
        if enable_structured
        else logging.Formatter("%(asctime)s %(levelname)-8s [%(name)s] %(message)s")
    )

    handlers: list[logging.Handler] = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.getLevelName(level_name))
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # GitPython and libtmux are chatty at DEBUG
    for noisy in ("git", "libtmux"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def log_performance(log_context: LogContext = LogContext.SESSION):
    """Decorator timing a coroutine; failures are logged and re-raised."""

    def decorator(func: Callable) -> Callable:
        logger = get_logger(func.__module__, log_context).bind(operation=func.__name__)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.warning(
                    f"{func.__name__} failed",
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                    error=str(e),
                )
                raise

            logger.debug(
                f"{func.__name__} completed",
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            return result

        return wrapper

    return decorator
