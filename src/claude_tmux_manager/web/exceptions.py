"""Custom exceptions for the web API."""

from ..core.git_status import GitStatusError
from ..utils.logging import (
    ConfigurationError,
    SessionError,
    SessionExistsError,
    SessionNotFoundError,
    SessionValidationError,
    TmuxError,
    TmuxManagerError,
    WorktreeError,
)


class TmuxManagerAPIException(Exception):
    """Base exception for the claude-tmux-manager API.

    Rendered as ``{"error": error, "message": message}``; ``message`` is
    omitted when None.
    """

    def __init__(self, error: str, status_code: int = 500, message: str | None = None):
        self.error = error
        self.message = message
        self.status_code = status_code
        super().__init__(message or error)

    def to_content(self) -> dict[str, str]:
        content = {"error": self.error}
        if self.message is not None:
            content["message"] = self.message
        return content


class SessionNotFoundAPIError(TmuxManagerAPIException):
    """Raised when no session is registered for the identity."""

    def __init__(self, project: str, feature: str):
        super().__init__("Session not found", 404)
        self.project = project
        self.feature = feature


class ValidationAPIError(TmuxManagerAPIException):
    """Raised when request data is invalid."""

    def __init__(self, message: str):
        super().__init__("Validation error", 400, message)


class ConflictAPIError(TmuxManagerAPIException):
    """Raised when the request conflicts with existing state."""

    def __init__(self, message: str):
        super().__init__("Conflict", 409, message)


class ServiceUnavailableAPIError(TmuxManagerAPIException):
    """Raised when git or tmux cannot complete an operation."""

    def __init__(self, message: str):
        super().__init__("Service unavailable", 503, message)


class TerminalOperationError(TmuxManagerAPIException):
    """Raised when opening a terminal fails unexpectedly."""

    def __init__(self, message: str):
        super().__init__("Failed to open terminal", 500, message)


def to_api_exception(exc: TmuxManagerError) -> TmuxManagerAPIException:
    """Map a domain error onto its HTTP representation."""
    if isinstance(exc, SessionNotFoundError):
        return TmuxManagerAPIException("Session not found", 404)
    if isinstance(exc, SessionValidationError):
        return ValidationAPIError(exc.message)
    if isinstance(exc, (SessionExistsError, SessionError)):
        return ConflictAPIError(exc.message)
    if isinstance(exc, (WorktreeError, TmuxError, GitStatusError)):
        return ServiceUnavailableAPIError(exc.message)
    if isinstance(exc, ConfigurationError):
        return TmuxManagerAPIException("Configuration error", 500, exc.message)
    return TmuxManagerAPIException("Internal server error", 500, exc.message)
