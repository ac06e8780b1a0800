"""Unit tests for logging_abstraction, correlation and instrumentation."""

import asyncio
import json
import logging
from unittest.mock import MagicMock, patch

import pytest

from plum_lightpad.correlation import (
    correlation_context,
    get_correlation_id,
    new_correlation_id,
)
from plum_lightpad.instrumentation import _log_timing, timed_async
from plum_lightpad.logging_abstraction import HumanReadableFormatter, JSONFormatter, PlumLogger, set_package_level


def _record(msg="hello %s", args=("world",), extra_data=None, level=logging.INFO):
    record = logging.LogRecord("plum_lightpad.test", level, __file__, 42, msg, args, None)
    if extra_data is not None:
        record.extra_data = extra_data
    return record


class TestCorrelation:
    """Tests for correlation id context"""

    def test_new_ids_are_unique(self):
        assert new_correlation_id() != new_correlation_id()

    def test_context_sets_and_restores(self):
        assert get_correlation_id() is None

        with correlation_context("outer") as outer:
            assert outer == "outer"
            with correlation_context() as inner:
                assert get_correlation_id() == inner
                assert inner != "outer"
            assert get_correlation_id() == "outer"

        assert get_correlation_id() is None

    @pytest.mark.asyncio
    async def test_tasks_inherit_id(self):
        async def read_id():
            return get_correlation_id()

        with correlation_context("sync-1"):
            results = await asyncio.gather(read_id(), read_id())

        assert results == ["sync-1", "sync-1"]


class TestFormatters:
    """Tests for JSON and human-readable formatters"""

    def test_json_formatter(self):
        with correlation_context("abc123"):
            line = JSONFormatter().format(_record(extra_data={"lpid": "x"}))

        data = json.loads(line)
        assert data["message"] == "hello world"
        assert data["level"] == "INFO"
        assert data["correlation_id"] == "abc123"
        assert data["context"] == {"lpid": "x"}

    def test_json_formatter_without_context(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert "context" not in data
        assert data["correlation_id"] is None

    def test_human_formatter_appends_extra(self):
        with correlation_context("0123456789abcdef"):
            line = HumanReadableFormatter().format(_record(extra_data={"lpid": "x", "level": 128}))

        assert "[01234567]" in line
        assert "hello world" in line
        assert line.endswith("| lpid=x | level=128")

    def test_human_formatter_without_correlation(self):
        line = HumanReadableFormatter().format(_record())

        assert "[--------]" in line


class TestPlumLogger:
    """Tests for PlumLogger"""

    def test_extra_is_stored_as_extra_data(self):
        logger = PlumLogger("plum_lightpad.tests.extra", human_output="stderr")
        with patch.object(logger.logger, "log") as mock_log:
            logger.info("msg %s", 1, extra={"k": "v"})

        mock_log.assert_called_once_with(logging.INFO, "msg %s", 1, extra={"extra_data": {"k": "v"}})

    def test_handlers_added_once(self):
        first = PlumLogger("plum_lightpad.tests.once", human_output="stderr")
        second = PlumLogger("plum_lightpad.tests.once", human_output="stderr")

        assert len(first.logger.handlers) == 1
        assert second.logger.handlers is first.logger.handlers

    def test_json_file_handler(self, tmp_path):
        path = tmp_path / "logs" / "plum.jsonl"
        logger = PlumLogger("plum_lightpad.tests.json", log_format="json", json_file=path)

        logger.warning("disk %s", "full", extra={"free": 0})
        for handler in logger.logger.handlers:
            handler.flush()

        data = json.loads(path.read_text(encoding="utf-8").strip())
        assert data["message"] == "disk full"
        assert data["context"] == {"free": 0}

    def test_set_package_level(self):
        logger = PlumLogger("plum_lightpad.tests.level", human_output="stderr")
        other = logging.getLogger("someone_else")
        other_level = other.level

        set_package_level(logging.DEBUG)

        assert logger.logger.level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in logger.logger.handlers)
        assert other.level == other_level


class TestInstrumentation:
    """Tests for timed_async"""

    @pytest.mark.asyncio
    async def test_returns_result_when_tracking_disabled(self):
        @timed_async("op")
        async def work(x):
            return x * 2

        with patch("plum_lightpad.const.PLUM_PERF_TRACKING", False), patch(
            "plum_lightpad.instrumentation._log_timing",
        ) as mock_log:
            assert await work(2) == 4

        mock_log.assert_not_called()

    @pytest.mark.asyncio
    async def test_logs_timing_even_on_error(self):
        @timed_async("failing_op")
        async def work():
            raise RuntimeError("boom")

        with patch("plum_lightpad.const.PLUM_PERF_TRACKING", True), patch(
            "plum_lightpad.instrumentation._log_timing",
        ) as mock_log:
            with pytest.raises(RuntimeError):
                await work()

        assert mock_log.call_args.args[1] == "failing_op"

    def test_slow_operation_logs_warning(self):
        log = MagicMock()

        _log_timing(log, "op", 1500.0, 1000)

        log.warning.assert_called_once()
        log.debug.assert_not_called()

    def test_fast_operation_logs_debug(self):
        log = MagicMock()

        _log_timing(log, "op", 10.0, 1000)

        log.debug.assert_called_once()
        log.warning.assert_not_called()
