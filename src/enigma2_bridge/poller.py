"""Fixed-interval polling of receiver state into bus updates."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable, Sequence

from enigma2_bridge.coercion import create_state
from enigma2_bridge.const import ENIGMA2_POLL_CONCURRENCY, MIN_POLL_SLEEP_MS, POLL_TASK_NAME
from enigma2_bridge.exceptions import TransportError
from enigma2_bridge.logging_abstraction import get_logger, log_scope
from enigma2_bridge.registry import DeviceRegistry
from enigma2_bridge.structs import POLLED_KINDS, BindingConfig, BindingProvider, CommandKind, DeviceNode, State

logger = get_logger(__name__)

type Publisher = Callable[[str, State], Awaitable[None]]
type PollPlan = dict[str, list[tuple[BindingProvider, BindingConfig]]]


async def read_value(node: DeviceNode, cmd_kind: CommandKind) -> str | None:
    """Read the current device value for ``cmd_kind``; None for kinds without one."""
    match cmd_kind:
        case CommandKind.VOLUME:
            return await node.get_volume()
        case CommandKind.CHANNEL:
            return await node.get_channel()
        case CommandKind.POWERSTATE:
            return await node.get_on_off()
        case _:
            return None


class PollLoop:
    """Periodically reads every outbound binding and publishes what it finds.

    Devices are polled concurrently (bounded by ``concurrency``), the bindings
    of one device one after another. A transport failure ends that device's
    turn for the current tick only.
    """

    lp: str = "PollLoop:"

    def __init__(
        self,
        registry: DeviceRegistry,
        providers: Sequence[BindingProvider],
        publish: Publisher,
        get_interval: Callable[[], int],
        concurrency: int = ENIGMA2_POLL_CONCURRENCY,
    ) -> None:
        self.registry: DeviceRegistry = registry
        self.providers: Sequence[BindingProvider] = providers
        self.publish: Publisher = publish
        self.get_interval: Callable[[], int] = get_interval
        self.concurrency: int = max(1, concurrency)
        self.running: bool = False
        self.task: asyncio.Task[None] | None = None
        self._clamped_interval: int | None = None

    def build_plan(self) -> PollPlan:
        """Group the outbound, pollable bindings of all providers by device id."""
        plan: PollPlan = {}
        for provider in list(self.providers):
            for item_name in provider.item_names:
                binding = provider.get_binding_config_for(item_name)
                if binding is None or binding.is_inbound or binding.cmd_kind not in POLLED_KINDS:
                    continue
                plan.setdefault(binding.device_id, []).append((provider, binding))
        return plan

    async def run_tick(self) -> int:
        """Poll once. Returns the number of state updates published."""
        with log_scope("poll"):
            plan = self.build_plan()
            logger.debug("%s Tick started", self.lp, extra={"devices": len(plan)})
            semaphore = asyncio.Semaphore(self.concurrency)
            results = await asyncio.gather(
                *(self._poll_device(semaphore, device_id, bindings) for device_id, bindings in plan.items()),
                return_exceptions=True,
            )
            published = 0
            for device_id, result in zip(plan, results, strict=True):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                if isinstance(result, BaseException):
                    logger.error(
                        "%s Polling device failed: %r",
                        self.lp,
                        result,
                        extra={"device_id": device_id},
                    )
                    continue
                published += result
            logger.debug("%s Tick finished", self.lp, extra={"published": published})
            return published

    async def _poll_device(
        self,
        semaphore: asyncio.Semaphore,
        device_id: str,
        bindings: list[tuple[BindingProvider, BindingConfig]],
    ) -> int:
        lp = f"{self.lp}poll_device:"
        node = self.registry.get(device_id)
        if node is None:
            for _provider, binding in bindings:
                logger.error('%s Unknown deviceId "%s"', lp, device_id, extra={"item": binding.item_name})
            return 0

        published = 0
        async with semaphore:
            for provider, binding in bindings:
                try:
                    value = await read_value(node, binding.cmd_kind)
                except TransportError as e:
                    logger.warning(
                        "%s %s, skipping device until next tick",
                        lp,
                        e,
                        extra={"device_id": device_id, "item": binding.item_name},
                    )
                    break
                if value is None:
                    continue
                state = create_state(provider.get_item_type(binding.item_name), value)
                await self.publish(binding.item_name, state)
                published += 1
        return published

    def sleep_seconds(self) -> float:
        interval = self.get_interval()
        if interval > 0:
            self._clamped_interval = None
            return interval / 1000
        if self._clamped_interval != interval:
            logger.warning(
                "%s Refresh interval %dms is not positive, sleeping %dms between ticks",
                self.lp,
                interval,
                MIN_POLL_SLEEP_MS,
            )
            self._clamped_interval = interval
        return MIN_POLL_SLEEP_MS / 1000

    async def _run(self) -> None:
        logger.info("%s Starting %s", self.lp, POLL_TASK_NAME, extra={"interval_ms": self.get_interval()})
        while self.running:
            try:
                _ = await self.run_tick()
                await asyncio.sleep(self.sleep_seconds())
            except asyncio.CancelledError:
                logger.info("%s %s cancelled", self.lp, POLL_TASK_NAME)
                break
            except Exception:
                logger.exception("%s Error in poll tick", self.lp)
                await asyncio.sleep(self.sleep_seconds())

    def start(self) -> None:
        if self.task is not None and not self.task.done():
            return
        self.running = True
        self.task = asyncio.create_task(self._run(), name=POLL_TASK_NAME)

    async def stop(self) -> None:
        self.running = False
        if self.task is not None and not self.task.done():
            logger.debug("%s Cancelling poll task", self.lp)
            _ = self.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self.task
        self.task = None

    async def trigger_refresh(self) -> int:
        """Run one tick now, outside the schedule."""
        return await self.run_tick()
