"""Tests for JSON and console log formatters."""

import json
import logging
import sys

import pytest

from core.logging.context import clear_log_context, set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter


def _make_record(
    msg="test message",
    level=logging.INFO,
    name="test.logger",
    exc_info=None,
    **extras,
):
    record = logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extras.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def clear_context():
    clear_log_context()
    yield
    clear_log_context()


class TestJSONFormatter:

    def test_formats_basic_json_with_required_fields(self):
        formatter = JSONFormatter()
        output = json.loads(formatter.format(_make_record()))

        assert output["level"] == "INFO"
        assert output["logger"] == "test.logger"
        assert output["message"] == "test message"
        assert output["ts"].endswith("Z")

    def test_includes_context(self):
        set_log_context(plugin="rollbar", worker_id="forwarder-brave-tiger", trace_id="abc123")
        output = json.loads(JSONFormatter().format(_make_record()))

        assert output["plugin"] == "rollbar"
        assert output["worker_id"] == "forwarder-brave-tiger"
        assert output["trace_id"] == "abc123"

    def test_omits_empty_context(self):
        output = json.loads(JSONFormatter().format(_make_record()))

        assert "plugin" not in output
        assert "trace_id" not in output

    def test_extra_trace_id_overrides_context(self):
        set_log_context(trace_id="from-context")
        output = json.loads(JSONFormatter().format(_make_record(trace_id="explicit")))

        assert output["trace_id"] == "explicit"

    def test_includes_whitelisted_extras_only(self):
        record = _make_record(outcome="rejected", http_status=422, unrelated="nope")
        output = json.loads(JSONFormatter().format(record))

        assert output["outcome"] == "rejected"
        assert output["http_status"] == 422
        assert "unrelated" not in output

    def test_coerces_numeric_fields(self):
        output = json.loads(JSONFormatter().format(_make_record(http_status="503", duration_ms="1.5")))

        assert output["http_status"] == 503
        assert output["duration_ms"] == 1.5

    def test_invalid_numeric_field_is_dropped(self):
        output = json.loads(JSONFormatter().format(_make_record(http_status="n/a")))

        assert "http_status" not in output

    def test_source_location_for_debug_and_error_only(self):
        debug = json.loads(JSONFormatter().format(_make_record(level=logging.DEBUG)))
        info = json.loads(JSONFormatter().format(_make_record(level=logging.INFO)))

        assert debug["file"] == "test.py:42"
        assert "file" not in info

    def test_includes_exception_block(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _make_record(level=logging.WARNING, exc_info=sys.exc_info())

        output = json.loads(JSONFormatter().format(record))

        assert output["exception"]["type"] == "ValueError"
        assert output["exception"]["message"] == "boom"
        assert "Traceback" in output["exception"]["stacktrace"]


class TestJSONFormatterRedaction:

    def test_redacts_access_token_in_item_dict(self):
        item = {"access_token": "secret-token", "data": {"level": "info"}}
        output = json.loads(JSONFormatter().format(_make_record(rollbar_item=item)))

        assert output["rollbar_item"]["access_token"] == "[REDACTED]"
        assert output["rollbar_item"]["data"] == {"level": "info"}

    def test_does_not_mutate_logged_item(self):
        item = {"access_token": "secret-token", "data": {}}
        JSONFormatter().format(_make_record(rollbar_item=item))

        assert item["access_token"] == "secret-token"

    def test_redacts_access_token_in_serialized_body(self):
        body = '{"access_token": "secret-token", "data": {"level": "info"}}'
        line = JSONFormatter().format(_make_record(request_body=body))

        assert "secret-token" not in line
        assert json.loads(line)["request_body"] == '{"access_token": "[REDACTED]", "data": {"level": "info"}}'

    def test_redacts_token_in_url_query(self):
        output = json.loads(
            JSONFormatter().format(_make_record(endpoint="https://api.example.com/item/?access_token=abc&x=1"))
        )

        assert output["endpoint"] == "https://api.example.com/item/?access_token=[REDACTED]&x=1"

    def test_leaves_plain_url_untouched(self):
        output = json.loads(JSONFormatter().format(_make_record(endpoint="https://api.rollbar.com/api/1/item/")))

        assert output["endpoint"] == "https://api.rollbar.com/api/1/item/"


class TestConsoleFormatter:

    @pytest.fixture
    def formatter(self):
        formatter = ConsoleFormatter()
        formatter._use_colors = False
        return formatter

    def test_basic_line(self, formatter):
        line = formatter.format(_make_record(level=logging.WARNING, msg="careful"))

        assert " - WARNING - careful" in line

    def test_plugin_prefix(self, formatter):
        set_log_context(plugin="rollbar")
        line = formatter.format(_make_record())

        assert "[rollbar]" in line

    def test_trace_and_outcome_tags(self, formatter):
        set_log_context(trace_id="0123456789abcdef")
        line = formatter.format(_make_record(outcome="timeout", msg="failed"))

        assert "[01234567] [timeout] failed" in line

    def test_colors_level_when_enabled(self):
        formatter = ConsoleFormatter()
        formatter._use_colors = True
        line = formatter.format(_make_record(level=logging.ERROR))

        assert f"{ConsoleFormatter.COLORS[logging.ERROR]}ERROR{ConsoleFormatter.RESET}" in line

    def test_appends_traceback(self, formatter):
        try:
            raise RuntimeError("kaput")
        except RuntimeError:
            record = _make_record(exc_info=sys.exc_info())

        line = formatter.format(record)

        assert "Traceback" in line
        assert "RuntimeError: kaput" in line
