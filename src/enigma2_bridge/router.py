"""Routing of inbound bus commands to receiver operations.

Each command kind has its own small handler class; :class:`CommandRouter`
resolves the binding and the device node for an item and hands the command
to the handler registered for the binding's kind.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import ClassVar, override

from enigma2_bridge.exceptions import InvalidCommandError, UnknownDeviceError, UnsupportedCommandError
from enigma2_bridge.logging_abstraction import get_logger
from enigma2_bridge.registry import DeviceRegistry
from enigma2_bridge.structs import BindingConfig, BindingProvider, CommandKind, DeviceNode, PowerState

logger = get_logger(__name__)


class CommandHandler:
    """Base class for per-kind command handlers."""

    kind: ClassVar[CommandKind]

    async def apply(self, node: DeviceNode, command: str, cmd_value: str | None) -> None:
        """Perform ``command`` on ``node``."""
        raise NotImplementedError

    @override
    def __repr__(self) -> str:
        return f"<{type(self).__name__}: {self.kind}>"


class VolumeHandler(CommandHandler):
    kind = CommandKind.VOLUME

    @override
    async def apply(self, node: DeviceNode, command: str, cmd_value: str | None) -> None:
        await node.set_volume(command)


class ChannelHandler(CommandHandler):
    kind = CommandKind.CHANNEL

    @override
    async def apply(self, node: DeviceNode, command: str, cmd_value: str | None) -> None:
        await node.set_channel(command)


class PauseHandler(CommandHandler):
    kind = CommandKind.PAUSE

    @override
    async def apply(self, node: DeviceNode, command: str, cmd_value: str | None) -> None:
        await node.send_play_pause(command)


class MuteHandler(CommandHandler):
    kind = CommandKind.MUTE

    @override
    async def apply(self, node: DeviceNode, command: str, cmd_value: str | None) -> None:
        await node.send_mute_unmute(command)


class RemoteControlHandler(CommandHandler):
    """Sends the key code stored on the binding; the command only triggers it."""

    kind = CommandKind.REMOTE_CONTROL

    @override
    async def apply(self, node: DeviceNode, command: str, cmd_value: str | None) -> None:
        if not cmd_value:
            raise InvalidCommandError(self.kind, command, "binding has no remote control code")
        await node.send_rc_command(command, cmd_value)


class PowerStateHandler(CommandHandler):
    kind = CommandKind.POWERSTATE

    def __init__(self, off_mode: PowerState = PowerState.STANDBY) -> None:
        self.off_mode: PowerState = off_mode

    @override
    async def apply(self, node: DeviceNode, command: str, cmd_value: str | None) -> None:
        await node.send_on_off(command, self.off_mode)


def default_handlers() -> dict[CommandKind, CommandHandler]:
    handlers: list[CommandHandler] = [
        VolumeHandler(),
        ChannelHandler(),
        PauseHandler(),
        MuteHandler(),
        RemoteControlHandler(),
        PowerStateHandler(),
    ]
    return {handler.kind: handler for handler in handlers}


class CommandRouter:
    """Dispatches one bus command to at most one device call."""

    lp: str = "CommandRouter:"

    def __init__(
        self,
        registry: DeviceRegistry,
        providers: Sequence[BindingProvider],
        handlers: Mapping[CommandKind, CommandHandler] | None = None,
    ) -> None:
        self.registry: DeviceRegistry = registry
        self.providers: Sequence[BindingProvider] = providers
        self.handlers: Mapping[CommandKind, CommandHandler] = handlers if handlers is not None else default_handlers()

    def find_binding(self, item_name: str) -> BindingConfig | None:
        for provider in self.providers:
            binding = provider.get_binding_config_for(item_name)
            if binding is not None:
                return binding
        return None

    def _resolve(self, binding: BindingConfig) -> tuple[DeviceNode, CommandHandler]:
        node = self.registry.get(binding.device_id)
        if node is None:
            raise UnknownDeviceError(binding.device_id)
        handler = self.handlers.get(binding.cmd_kind)
        if handler is None:
            raise UnsupportedCommandError(binding.cmd_kind)
        return node, handler

    async def route(self, item_name: str, command: str) -> bool:
        """Send ``command`` for ``item_name`` to its device.

        Returns True if a device operation was performed. Unknown devices,
        unsupported kinds and uninterpretable payloads are logged and dropped.
        Transport failures propagate to the caller.
        """
        lp = f"{self.lp}route:"
        binding = self.find_binding(item_name)
        if binding is None:
            logger.trace("%s No provider found for this item", lp, extra={"item": item_name})
            return False

        try:
            node, handler = self._resolve(binding)
        except (UnknownDeviceError, UnsupportedCommandError) as e:
            logger.error("%s %s", lp, e, extra={"item": item_name})
            return False

        logger.debug(
            "%s Dispatching command",
            lp,
            extra={"item": item_name, "device_id": node.id, "kind": binding.cmd_kind, "command": command},
        )
        try:
            await handler.apply(node, command, binding.cmd_value)
        except InvalidCommandError as e:
            logger.error("%s %s", lp, e, extra={"item": item_name, "device_id": node.id})
            return False
        return True
