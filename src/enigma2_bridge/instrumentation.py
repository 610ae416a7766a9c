"""Round-trip timing for receiver requests."""

from __future__ import annotations

import functools
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Concatenate, Protocol

from enigma2_bridge.const import ENIGMA2_PERF_THRESHOLD_MS, ENIGMA2_PERF_TRACKING

__all__ = ["PerfSettings", "configure_perf_tracking", "measure_time", "perf_settings", "timed_device_call"]


@dataclass
class PerfSettings:
    enabled: bool = ENIGMA2_PERF_TRACKING
    threshold_ms: int = ENIGMA2_PERF_THRESHOLD_MS


perf_settings = PerfSettings()


def configure_perf_tracking(enabled: bool, threshold_ms: int) -> None:
    perf_settings.enabled = enabled
    perf_settings.threshold_ms = threshold_ms


class _HasDeviceId(Protocol):
    id: str


def measure_time(start_time: float) -> float:
    """Milliseconds elapsed since ``start_time`` (a ``time.perf_counter()`` value)."""
    return (time.perf_counter() - start_time) * 1000


def timed_device_call[S: _HasDeviceId, **P, T](
    func: Callable[Concatenate[S, str, P], Awaitable[T]],
) -> Callable[Concatenate[S, str, P], Awaitable[T]]:
    """Time ``func(self, operation, ...)`` and log slow round trips.

    Requests slower than ``perf_settings.threshold_ms`` are logged at WARNING,
    the rest at DEBUG. Disabled when ``perf_settings.enabled`` is off.
    """

    @functools.wraps(func)
    async def wrapper(self: S, operation: str, *args: P.args, **kwargs: P.kwargs) -> T:
        from enigma2_bridge.logging_abstraction import get_logger

        if not perf_settings.enabled:
            return await func(self, operation, *args, **kwargs)

        threshold_ms = perf_settings.threshold_ms
        start_time = time.perf_counter()
        try:
            return await func(self, operation, *args, **kwargs)
        finally:
            elapsed_ms = measure_time(start_time)
            context = {
                "device_id": self.id,
                "operation": operation,
                "duration_ms": round(elapsed_ms, 2),
            }
            logger = get_logger(__name__)
            if elapsed_ms > threshold_ms:
                logger.warning(
                    "Slow receiver request: %s took %.1fms (threshold: %dms)",
                    operation,
                    elapsed_ms,
                    threshold_ms,
                    extra=context,
                )
            else:
                logger.debug("%s completed in %.1fms", operation, elapsed_ms, extra=context)

    return wrapper
