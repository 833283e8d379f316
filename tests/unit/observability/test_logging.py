"""Tests for structured logging."""

import json
import logging

from vynox.observability.logging import (
    ConsoleFormatter,
    JsonFormatter,
    LogContext,
    configure_logging,
    request_id_var,
)


def _record(message: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="vynox.cache.redis",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    """Test JSON log output."""

    def test_basic_fields(self) -> None:
        """Records carry level, logger and message."""
        data = json.loads(JsonFormatter().format(_record("Cache get failed")))
        assert data["level"] == "WARNING"
        assert data["logger"] == "vynox.cache.redis"
        assert data["message"] == "Cache get failed"
        assert "request_id" not in data

    def test_extra_fields(self) -> None:
        """Fields passed via extra are included; unserializable ones as strings."""
        data = json.loads(
            JsonFormatter().format(_record("x", cache_key="v1:ads:ver", client=object()))
        )
        assert data["cache_key"] == "v1:ads:ver"
        assert isinstance(data["client"], str)

    def test_request_id(self) -> None:
        """The bound request ID is attached."""
        with LogContext(request_id="req-1"):
            data = json.loads(JsonFormatter().format(_record("x")))
        assert data["request_id"] == "req-1"
        assert request_id_var.get() == ""


class TestConsoleFormatter:
    """Test console log output."""

    def test_plain_line(self) -> None:
        """Lines contain level, logger and short request ID."""
        with LogContext(request_id="abcdef123456"):
            line = ConsoleFormatter(use_colors=False).format(_record("hello"))
        assert "WARNING" in line
        assert "vynox.cache.redis | hello" in line
        assert line.endswith("req=abcdef12")


class TestConfigureLogging:
    """Test root logger setup."""

    def test_single_handler(self) -> None:
        """Reconfiguring replaces the root handler."""
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging(json_format=True, level="DEBUG")
            configure_logging(json_format=False, level="INFO")
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, ConsoleFormatter)
            assert root.level == logging.INFO
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
