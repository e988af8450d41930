"""Tests for the numeric logging levels, formatters and request ids."""
from __future__ import annotations

import io
import json
import logging
import os
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    from voice_proxy.core.logging import configure_logging, set_request_id

    set_request_id("-")
    configure_logging(level=2, force=True)


class TestLogLevelEnum:
    """Test LogLevel enum values."""

    def test_level_enum_values(self):
        from voice_proxy.core.logging import LogLevel

        assert LogLevel.MINIMAL == 1
        assert LogLevel.NORMAL == 2
        assert LogLevel.VERBOSE == 3
        assert LogLevel.DEBUG == 4


class TestLevelCoercion:
    """Test level coercion from various input types."""

    def test_from_int(self):
        from voice_proxy.core.logging import LogLevel, coerce_level

        assert coerce_level(1) == LogLevel.MINIMAL
        assert coerce_level(4) == LogLevel.DEBUG

    def test_from_names(self):
        from voice_proxy.core.logging import LogLevel, coerce_level

        assert coerce_level("verbose") == LogLevel.VERBOSE
        assert coerce_level("INFO") == LogLevel.NORMAL
        assert coerce_level("WARNING") == LogLevel.MINIMAL
        assert coerce_level("3") == LogLevel.VERBOSE

    def test_python_levels(self):
        from voice_proxy.core.logging import LogLevel, coerce_level

        assert coerce_level(logging.WARNING) == LogLevel.MINIMAL
        assert coerce_level(logging.INFO) == LogLevel.NORMAL

    def test_invalid_defaults_to_normal(self):
        from voice_proxy.core.logging import LogLevel, coerce_level

        assert coerce_level("nonsense") == LogLevel.NORMAL
        assert coerce_level(None) == LogLevel.NORMAL


class TestLevelFiltering:
    """Messages above the configured level are suppressed."""

    def test_minimal(self):
        from voice_proxy.core.logging import configure_logging, fail, get_logger, info

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=1, force=True)
            log = get_logger("test_minimal")
            info(log, "batch_start")
            fail(log, "provider_failed")

        output = captured.getvalue()
        assert "provider_failed" in output
        assert "batch_start" not in output

    def test_normal_hides_verbose(self):
        from voice_proxy.core.logging import configure_logging, get_logger, info, verbose

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=2, force=True)
            log = get_logger("test_normal")
            info(log, "provider_call")
            verbose(log, "pacing")

        output = captured.getvalue()
        assert "provider_call" in output
        assert "pacing" not in output

    def test_verbose_shows_attempts(self):
        from voice_proxy.core.logging import configure_logging, debug, get_logger, verbose

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=3, force=True)
            log = get_logger("test_verbose")
            verbose(log, "provider_attempt", attempt=2)
            debug(log, "internal_state")

        output = captured.getvalue()
        assert "provider_attempt" in output
        assert "attempt=2" in output
        assert "internal_state" not in output

    def test_seconds_rendered(self):
        from voice_proxy.core.logging import configure_logging, get_logger, success

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=2, force=True)
            success(get_logger("test_seconds"), "provider_done", seconds=1.5)

        assert "1.500s" in captured.getvalue()


class TestRequestId:

    def test_request_id_in_output(self):
        from voice_proxy.core.logging import configure_logging, get_logger, info, set_request_id

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=2, force=True)
            set_request_id("rid-abc123")
            info(get_logger("test_rid"), "request_failed")

        assert "rid-abc123" in captured.getvalue()


class TestEnvOverride:

    def test_env_level(self):
        from voice_proxy.core.logging import LogLevel, configure_logging, get_level, get_level_name

        with patch.dict(os.environ, {"VOICE_PROXY_LOG_LEVEL": "3"}):
            configure_logging(force=True)
            assert get_level() == LogLevel.VERBOSE
            assert get_level_name() == "VERBOSE"


class TestJsonlOutput:

    def test_jsonl_lines(self, tmp_path):
        from voice_proxy.core.logging import configure_logging, get_logger, info

        with patch.dict(os.environ, {
            "VOICE_PROXY_LOG_DIR": str(tmp_path),
            "VOICE_PROXY_JSONL_FILE": "test.jsonl",
        }):
            configure_logging(level=2, force=True)
            info(get_logger("test_jsonl"), "cached", key="c1_wuenda_en")
            for handler in logging.getLogger().handlers:
                handler.flush()

        lines = (tmp_path / "test.jsonl").read_text(encoding="utf-8").splitlines()
        records = [json.loads(line) for line in lines if line]
        match = [r for r in records if r["message"] == "cached"]

        assert match
        assert match[0]["level"] == 2
        assert match[0]["tag"] == "INFO"
        assert match[0]["extra"] == {"key": "c1_wuenda_en"}


class TestConsoleFormatter:

    def test_no_color_env(self):
        from voice_proxy.core.logging import supports_color

        with patch.dict(os.environ, {"VOICE_PROXY_NO_COLOR": "1"}):
            assert supports_color() is False

    def test_plain_format(self):
        from voice_proxy.core.logging import ColoredConsoleFormatter

        record = logging.LogRecord("x", logging.INFO, __file__, 1, "cached", None, None)
        record.tag = "INFO"
        record.request_id = "-"
        record.extra_data = {"cache": "hit"}
        record.seconds = None

        line = ColoredConsoleFormatter(use_colors=False).format(record)
        assert "[ INFO  ]" in line
        assert "cache=hit" in line
        assert "\033[" not in line
