"""The Enigma2 binding: configuration, polling and command dispatch for one bus."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping

from enigma2_bridge.const import DEFAULT_REFRESH_INTERVAL_MS, ENIGMA2_POLL_CONCURRENCY
from enigma2_bridge.devices import Enigma2Node
from enigma2_bridge.logging_abstraction import get_logger, log_scope
from enigma2_bridge.poller import PollLoop, Publisher
from enigma2_bridge.reconciler import Reconciliation, reconcile
from enigma2_bridge.registry import DeviceRegistry, NodeFactory
from enigma2_bridge.router import CommandRouter
from enigma2_bridge.structs import BindingProvider

logger = get_logger(__name__)

type ReadinessListener = Callable[[bool], Awaitable[None]]


class Enigma2Binding:
    """Bridges bus items to Enigma2 receivers.

    The host feeds configuration snapshots to :meth:`updated` and commands to
    :meth:`receive_command`, and receives state through the ``publish``
    callback. Polling runs only while the binding is started and every known
    device is properly configured.
    """

    lp: str = "Enigma2Binding:"

    def __init__(
        self,
        publish: Publisher,
        node_factory: NodeFactory = Enigma2Node,
        on_configured: ReadinessListener | None = None,
        poll_concurrency: int = ENIGMA2_POLL_CONCURRENCY,
    ) -> None:
        self.registry: DeviceRegistry = DeviceRegistry(node_factory)
        self.providers: list[BindingProvider] = []
        self.refresh_interval: int = DEFAULT_REFRESH_INTERVAL_MS
        self.properly_configured: bool = False
        self.active: bool = False
        self.on_configured: ReadinessListener | None = on_configured
        self.router: CommandRouter = CommandRouter(self.registry, self.providers)
        self.poller: PollLoop = PollLoop(
            self.registry,
            self.providers,
            publish,
            lambda: self.refresh_interval,
            poll_concurrency,
        )

    def add_binding_provider(self, provider: BindingProvider) -> None:
        if provider not in self.providers:
            self.providers.append(provider)

    def remove_binding_provider(self, provider: BindingProvider) -> None:
        if provider in self.providers:
            self.providers.remove(provider)

    def provides_binding_for(self, item_name: str) -> bool:
        return any(p.get_binding_config_for(item_name) is not None for p in self.providers)

    async def updated(self, config: Mapping[str, object] | None) -> Reconciliation | None:
        """Apply a configuration snapshot. ``None`` leaves everything as it is.

        Raises:
            ConfigurationError: the snapshot was rejected; no state was changed.

        """
        if config is None:
            return None

        result = reconcile(self.registry, config, self.refresh_interval)
        if result.refresh_interval != self.refresh_interval:
            logger.info(
                "%s Refresh interval changed",
                self.lp,
                extra={"old_ms": self.refresh_interval, "new_ms": result.refresh_interval},
            )
        self.refresh_interval = result.refresh_interval
        await self.set_properly_configured(result.ready)
        return result

    async def set_properly_configured(self, ready: bool) -> None:
        if ready != self.properly_configured:
            logger.info("%s Properly configured: %s", self.lp, ready, extra={"devices": len(self.registry)})
        self.properly_configured = ready
        if self.active:
            if ready:
                self.poller.start()
            else:
                await self.poller.stop()
        if self.on_configured is not None:
            await self.on_configured(ready)

    async def receive_command(self, item_name: str, command: str) -> bool:
        """Route one command; returns True if a device call was made.

        Raises:
            TransportError: the device could not be reached.

        """
        with log_scope("cmd"):
            logger.debug("%s Command received", self.lp, extra={"item": item_name, "command": command})
            return await self.router.route(item_name, command)

    async def start(self) -> None:
        self.active = True
        if self.properly_configured:
            self.poller.start()
        else:
            logger.info("%s Not properly configured yet, polling deferred", self.lp)

    async def stop(self) -> None:
        self.active = False
        await self.poller.stop()
        await self.registry.close()
        logger.info("%s Stopped", self.lp)
