"""Tests for logging utility functions."""

import logging
from unittest.mock import MagicMock

from core.errors.exceptions import ConfigurationError
from core.logging.utilities import _RESERVED_LOG_KEYS, log_exception, log_with_context


class TestLogWithContext:

    def test_logs_message_at_given_level(self):
        logger = MagicMock()
        log_with_context(logger, logging.INFO, "test message")

        logger.log.assert_called_once_with(logging.INFO, "test message", exc_info=None, extra={})

    def test_passes_extra_fields(self):
        logger = MagicMock()
        log_with_context(
            logger, logging.DEBUG, "Rollbar response",
            http_status=200, duration_ms=12.5,
        )

        logger.log.assert_called_once_with(
            logging.DEBUG, "Rollbar response",
            exc_info=None,
            extra={"http_status": 200, "duration_ms": 12.5},
        )

    def test_filters_reserved_keys(self):
        logger = MagicMock()
        log_with_context(logger, logging.INFO, "msg", message="clash", name="clash", outcome="ok")

        extra = logger.log.call_args.kwargs["extra"]
        assert extra == {"outcome": "ok"}
        assert "message" in _RESERVED_LOG_KEYS

    def test_exc_info_passed_through(self):
        logger = MagicMock()
        log_with_context(logger, logging.ERROR, "failed", exc_info=True)

        assert logger.log.call_args.kwargs["exc_info"] is True


class TestLogException:

    def test_includes_category_for_forwarder_errors(self):
        logger = MagicMock()
        log_exception(logger, ConfigurationError("bad token"), "Invalid configuration")

        args, kwargs = logger.log.call_args
        assert args == (logging.ERROR, "Invalid configuration")
        assert kwargs["extra"]["error_category"] == "permanent"
        assert kwargs["extra"]["error_message"] == "bad token"
        assert kwargs["extra"]["error_type"] == "ConfigurationError"

    def test_explicit_category_wins(self):
        logger = MagicMock()
        log_exception(logger, ConfigurationError("x"), "msg", error_category="transient")

        assert logger.log.call_args.kwargs["extra"]["error_category"] == "transient"

    def test_truncates_long_messages(self):
        logger = MagicMock()
        log_exception(logger, ValueError("x" * 600), "msg")

        message = logger.log.call_args.kwargs["extra"]["error_message"]
        assert len(message) == 503
        assert message.endswith("...")

    def test_empty_message_uses_type_name(self):
        logger = MagicMock()
        log_exception(logger, TimeoutError(), "msg")

        assert logger.log.call_args.kwargs["extra"]["error_message"] == "TimeoutError"

    def test_traceback_toggle(self):
        logger = MagicMock()
        exc = RuntimeError("x")

        log_exception(logger, exc, "with", level=logging.WARNING)
        assert logger.log.call_args.kwargs["exc_info"] is exc

        log_exception(logger, exc, "without", include_traceback=False)
        assert "exc_info" not in logger.log.call_args.kwargs
