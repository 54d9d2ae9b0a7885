"""Tests for logger.py: setup_logging(), apply_logging_settings() and
JsonFormatter.

Covers:
- CLI mode logging (stderr handler)
- MCP mode logging (file handler)
- Debug level override and LOG_LEVEL handling
- Config-file settings applied on top of setup_logging
- JSON formatter output, including sync context fields

Strategy: Mock logging.basicConfig to verify setup_logging passes correct args,
since pytest's log capture plugin interferes with actual basicConfig calls.
"""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from notes_mcp_server.logger import (
    DEFAULT_MCP_LOG_FILE,
    JsonFormatter,
    apply_logging_settings,
    setup_logging,
)


def _file_handlers(handlers):
    return [h for h in handlers if isinstance(h, logging.FileHandler)]


def _record(msg="Hello %s", args=("world",), **extra):
    record = logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


# ---------------------------------------------------------------------------
# setup_logging tests
# ---------------------------------------------------------------------------


class TestSetupLogging:
    """Tests for setup_logging()."""

    @patch("notes_mcp_server.logger.logging.basicConfig")
    def test_cli_mode_logs_to_stderr(self, mock_basic):
        """CLI mode passes StreamHandler(stderr) to basicConfig."""
        setup_logging(mode="cli")

        mock_basic.assert_called_once()
        handlers = mock_basic.call_args[1]["handlers"]
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr

    @patch("notes_mcp_server.logger.logging.basicConfig")
    def test_mcp_mode_logs_to_file_only(self, mock_basic, tmp_path):
        """MCP mode never writes to stdio."""
        log_file = str(tmp_path / "test-mcp.log")
        setup_logging(mode="mcp", log_file=log_file)

        handlers = mock_basic.call_args[1]["handlers"]
        assert len(handlers) == 1
        assert _file_handlers(handlers)[0].baseFilename == log_file
        handlers[0].close()

    @patch("notes_mcp_server.logger.logging.FileHandler")
    @patch("notes_mcp_server.logger.logging.basicConfig")
    def test_mcp_mode_default_log_file(
        self, mock_basic, mock_file_handler, monkeypatch
    ):
        monkeypatch.delenv("LOG_FILE", raising=False)
        setup_logging(mode="mcp")
        mock_file_handler.assert_called_once_with(
            DEFAULT_MCP_LOG_FILE, mode="a"
        )

    @patch("notes_mcp_server.logger.logging.basicConfig")
    def test_debug_beats_env(self, mock_basic, monkeypatch):
        """debug=True overrides LOG_LEVEL env var."""
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(mode="cli", debug=True)
        assert mock_basic.call_args[1]["level"] == logging.DEBUG

    @patch("notes_mcp_server.logger.logging.basicConfig")
    def test_env_log_level_honored(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        setup_logging(mode="cli")
        assert mock_basic.call_args[1]["level"] == logging.ERROR

    @pytest.mark.parametrize(
        "mode, expected", [("mcp", logging.WARNING), ("cli", logging.INFO)]
    )
    @patch("notes_mcp_server.logger.logging.basicConfig")
    def test_default_levels(self, mock_basic, mode, expected, monkeypatch, tmp_path):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(mode=mode, log_file=str(tmp_path / "x.log"))
        assert mock_basic.call_args[1]["level"] == expected
        for h in _file_handlers(mock_basic.call_args[1]["handlers"]):
            h.close()

    @patch("notes_mcp_server.logger.logging.basicConfig")
    def test_cli_mode_with_log_file(self, mock_basic, tmp_path):
        """CLI mode with log_file creates both stderr and file handlers."""
        setup_logging(mode="cli", log_file=str(tmp_path / "test-cli.log"))

        handlers = mock_basic.call_args[1]["handlers"]
        assert len(handlers) == 2
        file_handlers = _file_handlers(handlers)
        assert len(file_handlers) == 1
        file_handlers[0].close()

    @patch("notes_mcp_server.logger.logging.basicConfig")
    def test_json_format_uses_json_formatter(self, mock_basic):
        setup_logging(mode="cli", debug_format="json")
        handlers = mock_basic.call_args[1]["handlers"]
        assert isinstance(handlers[0].formatter, JsonFormatter)

    @patch("notes_mcp_server.logger.logging.basicConfig")
    def test_third_party_silenced(self, _mock_basic):
        """Non-DEBUG mode silences urllib3/requests loggers."""
        setup_logging(mode="cli")
        assert logging.getLogger("urllib3").level == logging.WARNING
        assert logging.getLogger("requests").level == logging.WARNING


# ---------------------------------------------------------------------------
# apply_logging_settings tests
# ---------------------------------------------------------------------------


@pytest.fixture
def root_logger():
    """Give the test the root logger and restore it afterwards."""
    root = logging.getLogger()
    saved_level = root.level
    saved_handlers = list(root.handlers)
    saved_formatters = [h.formatter for h in saved_handlers]
    yield root
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    for handler, formatter in zip(saved_handlers, saved_formatters):
        handler.setFormatter(formatter)
    root.setLevel(saved_level)


class TestApplyLoggingSettings:
    def test_level_applied(self, root_logger, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        root_logger.setLevel(logging.WARNING)
        apply_logging_settings(level="error")
        assert root_logger.level == logging.ERROR

    def test_env_level_wins(self, root_logger, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        root_logger.setLevel(logging.WARNING)
        apply_logging_settings(level="ERROR")
        assert root_logger.level == logging.WARNING

    def test_debug_wins(self, root_logger, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        root_logger.setLevel(logging.DEBUG)
        apply_logging_settings(level="ERROR")
        assert root_logger.level == logging.DEBUG

    def test_json_format_applied_to_handlers(self, root_logger):
        apply_logging_settings(log_format="json")
        assert root_logger.handlers
        assert all(
            isinstance(h.formatter, JsonFormatter)
            for h in root_logger.handlers
        )

    def test_extra_file_added_once(self, root_logger, tmp_path):
        target = str(tmp_path / "extra.log")
        apply_logging_settings(log_file=target)
        apply_logging_settings(log_file=target)
        matching = [
            h
            for h in _file_handlers(root_logger.handlers)
            if h.baseFilename == target
        ]
        assert len(matching) == 1


# ---------------------------------------------------------------------------
# JsonFormatter tests
# ---------------------------------------------------------------------------


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_basic_output(self):
        """Formatted output is valid JSON with required keys."""
        formatter = JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        data = json.loads(formatter.format(_record()))

        assert "ts" in data
        assert data["level"] == "INFO"
        assert data["logger"] == "test.logger"
        assert data["msg"] == "Hello world"
        assert "note_id" not in data

    def test_context_fields_included(self):
        formatter = JsonFormatter()
        record = _record(
            "Pushed note %s",
            ("a",),
            note_id="a",
            remote_id="srv1",
            action="push_create",
            duration_ms=12,
        )
        data = json.loads(formatter.format(record))
        assert data["note_id"] == "a"
        assert data["remote_id"] == "srv1"
        assert data["action"] == "push_create"
        assert data["duration_ms"] == 12

    def test_includes_exception(self):
        """Exception info is included in 'exc' key."""
        formatter = JsonFormatter()
        try:
            raise ValueError("test error")
        except ValueError:
            exc_info = sys.exc_info()
        record = _record("An error occurred", ())
        record.exc_info = exc_info

        output = formatter.format(record)
        data = json.loads(output)

        assert "ValueError" in data["exc"]
        assert "test error" in data["exc"]
        assert "\n" not in output
