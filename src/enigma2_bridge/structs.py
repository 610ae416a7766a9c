"""Core data structures shared by the binding, the poller and the router."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import IntEnum, StrEnum
from typing import Protocol, Self

from pydantic import BaseModel, ConfigDict, model_validator


class CommandKind(StrEnum):
    """Device feature a bus item is bound to."""

    VOLUME = "volume"
    CHANNEL = "channel"
    POWERSTATE = "powerstate"
    PAUSE = "pause"
    MUTE = "mute"
    REMOTE_CONTROL = "remote_control"


# kinds that have a readable value on the receiver
POLLED_KINDS: frozenset[CommandKind] = frozenset({CommandKind.VOLUME, CommandKind.CHANNEL, CommandKind.POWERSTATE})


class Direction(StrEnum):
    """``IN`` bindings only receive commands, ``OUT`` bindings are also polled."""

    INBOUND = "in"
    OUTBOUND = "out"


class ItemType(StrEnum):
    """Value kind the host declares for a bus item."""

    NUMBER = "number"
    SWITCH = "switch"
    DIMMER = "dimmer"
    STRING = "string"


class PowerState(IntEnum):
    """OpenWebif ``/web/powerstate?newstate=`` values."""

    TOGGLE_STANDBY = 0
    DEEP_STANDBY = 1
    REBOOT = 2
    RESTART_GUI = 3
    WAKEUP = 4
    STANDBY = 5


class BindingConfig(BaseModel):
    """Immutable association between one bus item and one device command."""

    model_config = ConfigDict(frozen=True)

    item_name: str
    device_id: str
    cmd_kind: CommandKind
    direction: Direction = Direction.OUTBOUND
    cmd_value: str | None = None

    @model_validator(mode="after")
    def _check_cmd_value(self) -> Self:
        if self.cmd_kind is CommandKind.REMOTE_CONTROL and not self.cmd_value:
            msg = "remote_control bindings require a command value"
            raise ValueError(msg)
        if self.cmd_kind is not CommandKind.REMOTE_CONTROL and self.cmd_value is not None:
            msg = f"{self.cmd_kind} bindings do not take a command value"
            raise ValueError(msg)
        return self

    @property
    def is_inbound(self) -> bool:
        return self.direction is Direction.INBOUND


@dataclass(frozen=True, slots=True)
class DecimalState:
    value: Decimal

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, slots=True)
class OnOffState:
    value: bool

    def __str__(self) -> str:
        return "ON" if self.value else "OFF"


@dataclass(frozen=True, slots=True)
class PercentState:
    value: Decimal

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, slots=True)
class StringState:
    value: str

    def __str__(self) -> str:
        return self.value


type State = DecimalState | OnOffState | PercentState | StringState


class DeviceNode(Protocol):
    """Capabilities the binding needs from a receiver client."""

    id: str
    hostname: str
    user_name: str
    password: str

    def properly_configured(self) -> bool: ...

    async def get_volume(self) -> str | None: ...

    async def get_channel(self) -> str | None: ...

    async def get_on_off(self) -> str | None: ...

    async def set_volume(self, command: str) -> None: ...

    async def set_channel(self, command: str) -> None: ...

    async def send_play_pause(self, command: str) -> None: ...

    async def send_mute_unmute(self, command: str) -> None: ...

    async def send_rc_command(self, command: str, code: str) -> None: ...

    async def send_on_off(self, command: str, off_mode: PowerState) -> None: ...

    async def close(self) -> None: ...


class BindingProvider(Protocol):
    """Source of item bindings, owned by the host."""

    @property
    def item_names(self) -> list[str]: ...

    def get_binding_config_for(self, item_name: str) -> BindingConfig | None: ...

    def get_item_type(self, item_name: str) -> ItemType: ...
