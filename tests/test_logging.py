"""Unit tests for structured logging infrastructure."""

import json
import logging

import pytest

from issue_bridge.logging_config import (
    LOGGER_NAMESPACE,
    StructuredFormatter,
    TextFormatter,
    configure_logging,
)


def _record(msg="identifier_seen", name="issue_bridge.cache", **extra):
    record = logging.LogRecord(
        name=name,
        level=logging.INFO,
        pathname="cache.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_required_fields(self):
        log_data = json.loads(StructuredFormatter().format(_record()))

        assert log_data["level"] == "INFO"
        assert log_data["logger"] == "issue_bridge.cache"
        assert log_data["message"] == "identifier_seen"
        assert log_data["timestamp"].endswith("Z")
        assert "context" not in log_data

    def test_extras_in_context(self):
        output = StructuredFormatter().format(_record(identifier="MIR-1", found=True))
        assert json.loads(output)["context"] == {"identifier": "MIR-1", "found": True}

    @pytest.mark.parametrize("key", ["token", "api_key", "secret", "signature", "Authorization"])
    def test_sensitive_keys_redacted(self, key):
        output = StructuredFormatter().format(_record(**{key: "ghp_live_value"}))

        assert "ghp_live_value" not in output
        assert json.loads(output)["context"][key] == "[REDACTED]"

    def test_non_serializable_extras(self):
        output = StructuredFormatter().format(_record(path=object()))
        assert "path" in json.loads(output)["context"]

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            import sys

            record = _record()
            record.exc_info = sys.exc_info()

        log_data = json.loads(StructuredFormatter().format(record))
        assert "RuntimeError: boom" in log_data["exception"]


class TestConfigureLogging:
    def test_single_handler_on_repeat_calls(self):
        configure_logging("INFO", "json")
        configure_logging("DEBUG", "json")

        logger = logging.getLogger(LOGGER_NAMESPACE)
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_text_format(self):
        configure_logging("INFO", "text")
        handler = logging.getLogger(LOGGER_NAMESPACE).handlers[0]
        assert isinstance(handler.formatter, TextFormatter)

        configure_logging("INFO", "json")
        assert isinstance(handler.formatter, StructuredFormatter)

    def test_environment_defaults(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        configure_logging()
        assert logging.getLogger(LOGGER_NAMESPACE).level == logging.WARNING
        configure_logging("INFO", "json")
