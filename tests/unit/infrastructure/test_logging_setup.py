"""Tests for structlog/stdlib logging configuration."""

from __future__ import annotations

import logging
import queue
from collections.abc import Iterator

import pytest
import structlog

from streamgate.infrastructure.config import AppConfig
from streamgate.infrastructure.logging import setup


def _record(level: int, msg: object = "hello") -> logging.LogRecord:
    return logging.LogRecord("test", level, __file__, 1, msg, None, None)


class TestBuildLoggingConfig:
    def test_applies_level_except_pinned_loggers(self) -> None:
        cfg = setup.build_logging_config(AppConfig(log_level="DEBUG"))
        assert cfg["root"] == {"handlers": ["default"], "level": "DEBUG"}
        assert cfg["loggers"]["uvicorn"]["level"] == "DEBUG"
        assert cfg["loggers"]["uvicorn.access"]["level"] == "DEBUG"
        assert cfg["loggers"]["httpx"]["level"] == "WARNING"
        assert cfg["loggers"]["httpcore"]["level"] == "WARNING"

    def test_handlers_render_through_structlog(self) -> None:
        cfg = setup.build_logging_config(AppConfig(log_format="json"))
        assert cfg["handlers"]["default"]["formatter"] == "structlog"
        assert cfg["handlers"]["access"]["formatter"] == "structlog"
        processors = cfg["formatters"]["structlog"]["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_renderer(self) -> None:
        cfg = setup.build_logging_config(AppConfig(log_format="console"))
        processors = cfg["formatters"]["structlog"]["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_base_config_untouched(self) -> None:
        setup.build_logging_config(AppConfig(log_level="ERROR"))
        assert setup.BASE_LOGGING_CONFIG["loggers"]["uvicorn"]["level"] == "INFO"
        assert "structlog" not in setup.BASE_LOGGING_CONFIG["formatters"]


class TestLevelRangeFilter:
    def test_upper_bound(self) -> None:
        f = setup._LevelRangeFilter(max_level=logging.WARNING)
        assert f.filter(_record(logging.INFO))
        assert f.filter(_record(logging.WARNING))
        assert not f.filter(_record(logging.ERROR))

    def test_lower_bound(self) -> None:
        f = setup._LevelRangeFilter(min_level=logging.ERROR)
        assert not f.filter(_record(logging.WARNING))
        assert f.filter(_record(logging.CRITICAL))


def test_queue_handler_keeps_structured_msg() -> None:
    handler = setup._StructlogPreservingQueueHandler(queue.Queue())
    event = {"event": "http_request", "status_code": 200}
    prepared = handler.prepare(_record(logging.INFO, event))
    assert prepared.msg is event


def test_record_timestamp_uses_created_time() -> None:
    record = _record(logging.INFO)
    record.created = 0.0
    out = setup._add_record_created_timestamp_utc(None, None, {"_record": record})
    assert out["timestamp"] == "1970-01-01T00:00:00Z"


def test_drop_color_message() -> None:
    out = setup._drop_color_message(None, None, {"event": "x", "color_message": "y"})
    assert out == {"event": "x"}


@pytest.fixture()
def _restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    setup._stop_async_listener()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.mark.usefixtures("_restore_logging")
def test_configure_logging_installs_queue_handler() -> None:
    cfg = setup.configure_logging(AppConfig(log_level="WARNING", log_format="json"))

    root = logging.getLogger()
    assert cfg["root"]["level"] == "WARNING"
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], setup._StructlogPreservingQueueHandler)
    assert setup._QUEUE_LISTENER is not None
    assert logging.getLogger("httpx").level == logging.WARNING
