# tests/sme_portal/test_logging_utils.py
"""
Unit tests for logging helpers.
"""
import json
import logging
import os
from unittest.mock import patch

import pytest

from sme_portal.config import Config
from sme_portal.logging_utils import (
    ContextAdapter,
    HumanReadableFormatter,
    LogContext,
    QUIET_LOGGERS,
    StructuredFormatter,
    get_logger,
    setup_logging,
)


def _record(**extra) -> logging.LogRecord:
    record = logging.makeLogRecord(
        {"name": "sme_portal.pipeline", "levelname": "INFO", "levelno": logging.INFO, "msg": "Website built"}
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    """Tests for the log formatters."""

    @pytest.mark.unit
    def test_structured_output(self):
        """Test that JSON output carries service, message and extras."""
        line = StructuredFormatter().format(_record(stage="build_website", sme_id="s1", html=object()))

        payload = json.loads(line)
        assert payload["service"] == "sme-portal"
        assert payload["message"] == "Website built"
        assert payload["level"] == "INFO"
        assert payload["extra"]["stage"] == "build_website"
        assert payload["extra"]["sme_id"] == "s1"
        assert isinstance(payload["extra"]["html"], str)

    @pytest.mark.unit
    def test_human_readable_output(self):
        """Test that text output appends context fields."""
        line = HumanReadableFormatter(use_colors=False).format(_record(stage="deploy", sme_id="s1"))

        assert "INFO" in line
        assert "[sme_portal.pipeline] Website built" in line
        assert line.endswith("stage=deploy sme_id=s1")


class TestLogContext:
    """Tests for LogContext and ContextAdapter."""

    @pytest.mark.unit
    def test_nested_contexts(self):
        """Test that nested contexts merge and restore on exit."""
        with LogContext(stage="discover"):
            with LogContext(country_id="c1"):
                assert LogContext.current() == {"stage": "discover", "country_id": "c1"}
            assert LogContext.current() == {"stage": "discover"}
        assert LogContext.current() == {}

    @pytest.mark.unit
    def test_adapter_merges_context(self):
        """Test that the adapter adds context fields to extra."""
        adapter = ContextAdapter(get_logger("pipeline"), {})

        with LogContext(stage="deploy", sme_id="s1"):
            _, kwargs = adapter.process("msg", {"extra": {"url": "https://x"}})

        assert kwargs["extra"] == {"stage": "deploy", "sme_id": "s1", "url": "https://x"}

    @pytest.mark.unit
    def test_get_logger_namespace(self):
        """Test that loggers are namespaced under sme_portal."""
        assert get_logger("store").name == "sme_portal.store"
        assert get_logger("sme_portal.store").name == "sme_portal.store"


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way the test found it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    quiet = {name: logging.getLogger(name).level for name in QUIET_LOGGERS}
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, quiet_level in quiet.items():
        logging.getLogger(name).setLevel(quiet_level)


def _settings(**env) -> Config:
    with patch.dict(os.environ, env, clear=True):
        return Config()


class TestSetupLogging:
    """Tests for setup_logging defaults taken from configuration."""

    @pytest.mark.unit
    def test_json_format_and_level_from_config(self, restore_root_logger):
        """Test that LOG_FORMAT=json and LOG_LEVEL select the formatter and level."""
        setup_logging(settings=_settings(LOG_FORMAT="json", LOG_LEVEL="warning"))

        [handler] = restore_root_logger.handlers
        assert isinstance(handler.formatter, StructuredFormatter)
        assert restore_root_logger.level == logging.WARNING

    @pytest.mark.unit
    def test_text_format_in_dev(self, restore_root_logger):
        """Test that the dev default is human-readable text at INFO."""
        setup_logging(settings=_settings(APP_ENV="dev"))

        [handler] = restore_root_logger.handlers
        assert isinstance(handler.formatter, HumanReadableFormatter)
        assert restore_root_logger.level == logging.INFO

    @pytest.mark.unit
    def test_debug_flag_wins_over_log_level(self, restore_root_logger):
        """Test that DEBUG=true logs at DEBUG and un-quiets third-party loggers."""
        setup_logging(settings=_settings(DEBUG="true", LOG_LEVEL="error"))

        assert restore_root_logger.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.DEBUG

    @pytest.mark.unit
    @pytest.mark.parametrize("level,expected", [("debug", logging.DEBUG), ("bogus", logging.INFO)])
    def test_explicit_arguments_override_config(self, restore_root_logger, level, expected):
        """Test that explicit level and structured arguments take precedence."""
        setup_logging(level=level, structured=False, settings=_settings(LOG_FORMAT="json", LOG_LEVEL="error"))

        [handler] = restore_root_logger.handlers
        assert isinstance(handler.formatter, HumanReadableFormatter)
        assert restore_root_logger.level == expected
