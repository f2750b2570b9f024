"""Tests for settings and logging setup."""

import json
import logging
import sys

import pytest

from eventtail.config import DEFAULT_TAIL_URL, TailSettings, to_websocket_url
from eventtail.logging_config import JSONFormatter, get_logger, setup_logging


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way it was after the test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestTailSettings:
    """Tests for TailSettings.from_env()."""

    def test_defaults(self, monkeypatch):
        """Test defaults when nothing is set."""
        monkeypatch.delenv("EVENTTAIL_URL", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("LOG_FILE", raising=False)

        settings = TailSettings.from_env()

        assert settings.tail_url == DEFAULT_TAIL_URL
        assert settings.log_level == "WARNING"
        assert settings.log_file is None

    def test_reads_environment(self, monkeypatch):
        """Test values come from the environment."""
        monkeypatch.setenv("EVENTTAIL_URL", "https://events.example.com/tail")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("LOG_FILE", "logs/tail.log")

        settings = TailSettings.from_env()

        assert settings.tail_url == "https://events.example.com/tail"
        assert settings.log_level == "DEBUG"
        assert settings.log_file == "logs/tail.log"

    def test_empty_values_fall_back(self, monkeypatch):
        """Test empty variables count as unset."""
        monkeypatch.setenv("EVENTTAIL_URL", "")
        monkeypatch.setenv("LOG_FILE", "")

        settings = TailSettings.from_env()

        assert settings.tail_url == DEFAULT_TAIL_URL
        assert settings.log_file is None


class TestToWebsocketUrl:
    """Tests for to_websocket_url()."""

    def test_http(self):
        assert to_websocket_url("http://localhost:8000/tail") == "ws://localhost:8000/tail"

    def test_https(self):
        assert to_websocket_url("https://events.example.com/tail") == "wss://events.example.com/tail"

    def test_ws_unchanged(self):
        assert to_websocket_url("wss://events.example.com/tail") == "wss://events.example.com/tail"


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_formats_record_as_json(self):
        """Test the structured fields."""
        record = logging.LogRecord(
            name="eventtail.live.client",
            level=logging.WARNING,
            pathname=__file__,
            lineno=10,
            msg="Connection to %s failed",
            args=("ws://localhost:8000/tail",),
            exc_info=None,
        )
        record.created = 1706644800.5

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "WARNING"
        assert data["logger"] == "eventtail.live.client"
        assert data["message"] == "Connection to ws://localhost:8000/tail failed"
        assert data["line"] == 10
        assert data["timestamp"] == "2024-01-30T20:00:00.500000+00:00"
        assert "context" not in data

    def test_extra_fields_become_context(self):
        """Test known `extra=` fields are grouped under context."""
        record = logging.LogRecord(
            name="eventtail.live.client",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="closed",
            args=(),
            exc_info=None,
        )
        record.url = "ws://localhost:8000/tail"
        record.close_code = 1006
        record.attempt = 3
        record.unrelated = "ignored"

        data = json.loads(JSONFormatter().format(record))

        assert data["context"] == {
            "url": "ws://localhost:8000/tail",
            "attempt": 3,
            "close_code": 1006,
        }

    def test_includes_exception(self):
        """Test exception text is included."""
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            exc_info = sys.exc_info()

        record = logging.LogRecord(
            name="eventtail",
            level=logging.ERROR,
            pathname=__file__,
            lineno=1,
            msg="failed",
            args=(),
            exc_info=exc_info,
        )

        data = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: boom" in data["exception"]


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_sets_level_and_json_handler(self, restore_root_logger, monkeypatch):
        """Test the root logger is configured with the JSON formatter."""
        monkeypatch.delenv("LOG_FILE", raising=False)

        setup_logging(log_level="debug")

        assert restore_root_logger.level == logging.DEBUG
        assert any(
            isinstance(handler.formatter, JSONFormatter)
            for handler in restore_root_logger.handlers
        )

    def test_level_from_environment(self, restore_root_logger, monkeypatch):
        """Test LOG_LEVEL is used when no level is passed."""
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        monkeypatch.delenv("LOG_FILE", raising=False)

        setup_logging()

        assert restore_root_logger.level == logging.ERROR

    def test_writes_log_file(self, restore_root_logger, tmp_path):
        """Test the rotating file handler writes JSON lines."""
        log_file = tmp_path / "logs" / "tail.log"

        setup_logging(log_level="INFO", log_file=str(log_file))
        get_logger("eventtail.test").info("Polling %s", "https://api.example.com/tail")
        for handler in restore_root_logger.handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[-1])["message"] == "Polling https://api.example.com/tail"

    def test_quiets_client_libraries(self, restore_root_logger, monkeypatch):
        """Test httpx and websockets loggers stay at WARNING below DEBUG."""
        monkeypatch.delenv("LOG_FILE", raising=False)

        setup_logging(log_level="INFO")

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("websockets").level == logging.WARNING

    def test_debug_keeps_client_libraries(self, restore_root_logger, monkeypatch):
        """Test DEBUG leaves the library loggers alone."""
        monkeypatch.delenv("LOG_FILE", raising=False)
        logging.getLogger("httpcore").setLevel(logging.NOTSET)

        setup_logging(log_level="DEBUG")

        assert logging.getLogger("httpcore").level == logging.NOTSET


class TestGetLogger:
    """Tests for get_logger()."""

    def test_package_names_unchanged(self):
        assert get_logger("eventtail.live.client").name == "eventtail.live.client"
        assert get_logger("eventtail").name == "eventtail"

    def test_other_names_nested(self):
        """Test names outside the package go under eventtail."""
        assert get_logger("__main__").name == "eventtail.__main__"
        assert get_logger("eventtailer").name == "eventtail.eventtailer"
