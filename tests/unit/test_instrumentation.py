"""Unit tests for receiver request timing."""

from __future__ import annotations

import logging
import time
from unittest.mock import patch

import pytest

from enigma2_bridge.instrumentation import configure_perf_tracking, measure_time, perf_settings, timed_device_call


class FakeNode:
    id = "dev1"

    @timed_device_call
    async def request(self, operation: str, path: str) -> str:
        return f"{operation}:{path}"


class TestTiming:
    def test_measure_time(self):
        start = time.perf_counter() - 0.05

        assert measure_time(start) >= 50

    @pytest.mark.asyncio
    async def test_fast_call_logged_at_debug(self, caplog: pytest.LogCaptureFixture):
        caplog.set_level(logging.DEBUG, logger="enigma2_bridge")

        result = await FakeNode().request("get_volume", "/web/vol")

        assert result == "get_volume:/web/vol"
        record = next(r for r in caplog.records if "get_volume completed" in r.getMessage())
        assert record.levelno == logging.DEBUG
        assert record.extra_data["device_id"] == "dev1"  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_slow_call_logged_as_warning(self, caplog: pytest.LogCaptureFixture):
        caplog.set_level(logging.WARNING, logger="enigma2_bridge")

        with patch.object(perf_settings, "threshold_ms", -1):
            _ = await FakeNode().request("get_channel", "/web/getcurrent")

        assert "Slow receiver request: get_channel" in caplog.text

    @pytest.mark.asyncio
    async def test_disabled(self, caplog: pytest.LogCaptureFixture):
        caplog.set_level(logging.DEBUG, logger="enigma2_bridge")

        with patch.object(perf_settings, "enabled", False):
            _ = await FakeNode().request("get_volume", "/web/vol")

        assert "completed in" not in caplog.text

    @pytest.mark.asyncio
    async def test_configure_perf_tracking(self, caplog: pytest.LogCaptureFixture):
        # Arrange
        caplog.set_level(logging.WARNING, logger="enigma2_bridge")
        saved = (perf_settings.enabled, perf_settings.threshold_ms)

        # Act
        configure_perf_tracking(True, -1)
        try:
            _ = await FakeNode().request("get_on_off", "/web/powerstate")
        finally:
            configure_perf_tracking(*saved)

        # Assert
        assert "Slow receiver request: get_on_off" in caplog.text
        assert "threshold: -1ms" in caplog.text
