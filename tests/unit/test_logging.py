"""Tests for structured logging and the error hierarchy."""

import json
import logging

import pytest

from claude_tmux_manager.core.git_status import GitStatusError, GitUnavailableError
from claude_tmux_manager.utils.logging import (
    LogContext,
    SessionError,
    SessionNotFoundError,
    StructuredFormatter,
    TmuxManagerError,
    get_logger,
    log_performance,
    setup_logging,
)


def make_record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="claude_tmux_manager.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_formats_json_with_extras(self):
        output = StructuredFormatter().format(
            make_record("Session created", context="session", project_name="demo")
        )

        data = json.loads(output)
        assert data["message"] == "Session created"
        assert data["level"] == "INFO"
        assert data["context"] == "session"
        assert data["project_name"] == "demo"

    def test_non_serializable_extras_become_strings(self, tmp_path):
        data = json.loads(StructuredFormatter().format(make_record(path=tmp_path)))
        assert data["path"] == str(tmp_path)


class TestContextualLogger:
    def test_keyword_fields_become_extras(self, caplog):
        logger = get_logger("claude_tmux_manager.test", LogContext.TERMINAL)

        with caplog.at_level(logging.INFO, logger="claude_tmux_manager.test"):
            logger.info("Opening terminal", window_name="demo:login")

        record = caplog.records[-1]
        assert record.context == "terminal"
        assert record.window_name == "demo:login"

    def test_bound_fields(self, caplog):
        base = get_logger("claude_tmux_manager.test", LogContext.SESSION)
        logger = base.bind(window_name="demo:login")

        with caplog.at_level(logging.DEBUG, logger="claude_tmux_manager.test"):
            logger.debug("Refreshing", stale=True)
            base.debug("Unbound")

        bound, unbound = caplog.records[-2:]
        assert bound.window_name == "demo:login"
        assert bound.stale is True
        assert not hasattr(unbound, "window_name")

    def test_error_with_exception(self, caplog):
        logger = get_logger("claude_tmux_manager.test", LogContext.GIT)

        with caplog.at_level(logging.ERROR, logger="claude_tmux_manager.test"):
            logger.error("Probe failed", exception=ValueError("bad"), worktree="x")

        record = caplog.records[-1]
        assert record.exc_info[0] is ValueError
        assert record.worktree == "x"


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestSetupLogging:
    def test_writes_structured_lines_to_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "manager.log"
        setup_logging("DEBUG", log_file=log_file, enable_structured=True, enable_console=False)

        get_logger("claude_tmux_manager.test", LogContext.CLI).info("Written", count=3)
        for handler in logging.getLogger().handlers:
            handler.flush()

        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["count"] == 3


class TestLogPerformance:
    @pytest.mark.asyncio
    async def test_passes_through_results(self):
        @log_performance(LogContext.SESSION)
        async def work(value):
            return value * 2

        assert await work(21) == 42

    @pytest.mark.asyncio
    async def test_reraises_errors(self):
        @log_performance(LogContext.SESSION)
        async def fail():
            raise SessionError("nope")

        with pytest.raises(SessionError):
            await fail()


class TestErrorHierarchy:
    def test_errors_carry_context_and_timestamp(self):
        error = SessionNotFoundError("missing", context={"project_name": "demo"})

        assert isinstance(error, SessionError)
        assert isinstance(error, TmuxManagerError)
        assert error.message == "missing"
        assert error.context == {"project_name": "demo"}
        assert error.timestamp.tzinfo is not None

    def test_git_errors_share_the_root(self):
        assert issubclass(GitUnavailableError, GitStatusError)
        assert issubclass(GitStatusError, TmuxManagerError)
