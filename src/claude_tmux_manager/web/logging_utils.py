"""Request logging for the HTTP layer."""

import functools
import time
from collections.abc import Callable
from typing import Any

from ..utils.logging import LogContext, get_logger

api_logger = get_logger(__name__ + ".api", LogContext.WEB)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def log_request_started(method: str, path: str, **fields: Any) -> None:
    api_logger.debug("Request started", method=method, path=path, **fields)


def log_request_finished(
    method: str, path: str, status_code: int, started: float, **fields: Any
) -> None:
    """Log a finished request; 4xx and 5xx responses are logged as warnings."""
    log = api_logger.warning if status_code >= 400 else api_logger.info
    log(
        f"{method} {path} -> {status_code}",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=_elapsed_ms(started),
        **fields,
    )


def track_api_performance() -> Callable[..., Any]:
    """Decorator timing an async route handler."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                api_logger.debug(
                    "Route handler raised",
                    handler=func.__name__,
                    duration_ms=_elapsed_ms(started),
                    error_type=type(e).__name__,
                )
                raise

            api_logger.debug(
                "Route handler finished",
                handler=func.__name__,
                duration_ms=_elapsed_ms(started),
            )
            return result

        return wrapper

    return decorator
