"""Item binding provider fed from per-item descriptors in the configuration file."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Self

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from enigma2_bridge.exceptions import ConfigurationError
from enigma2_bridge.logging_abstraction import get_logger
from enigma2_bridge.structs import BindingConfig, CommandKind, Direction, ItemType

logger = get_logger(__name__)


class ItemDescriptor(BaseModel):
    """One ``items:`` entry of the configuration file."""

    model_config = ConfigDict(extra="forbid")

    device: str
    command: CommandKind
    type: ItemType = ItemType.STRING
    direction: Direction = Direction.OUTBOUND
    value: str | None = None

    @field_validator("device", "value", mode="before")
    @classmethod
    def _stringify(cls, v: object) -> object:
        # YAML turns bare key codes and numeric ids into ints
        if isinstance(v, int | float) and not isinstance(v, bool):
            return str(v)
        return v


class ItemBindingProvider:
    """Holds the BindingConfig and declared item type of every bound item."""

    def __init__(self) -> None:
        self._configs: dict[str, BindingConfig] = {}
        self._item_types: dict[str, ItemType] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_items(cls, items: Mapping[str, Mapping[str, object]]) -> Self:
        provider = cls()
        for item_name, descriptor in items.items():
            provider.add_item(item_name, descriptor)
        return provider

    @property
    def item_names(self) -> list[str]:
        with self._lock:
            return list(self._configs)

    def add_item(self, item_name: str, descriptor: Mapping[str, object]) -> BindingConfig:
        """Parse ``descriptor`` and bind ``item_name``, replacing any previous binding.

        Raises:
            ConfigurationError: the descriptor is invalid.

        """
        try:
            parsed = ItemDescriptor.model_validate(descriptor)
            config = BindingConfig(
                item_name=item_name,
                device_id=parsed.device,
                cmd_kind=parsed.command,
                direction=parsed.direction,
                cmd_value=parsed.value,
            )
        except ValidationError as e:
            reason = "; ".join(err["msg"] for err in e.errors())
            raise ConfigurationError(item_name, dict(descriptor), reason) from e

        with self._lock:
            self._configs[item_name] = config
            self._item_types[item_name] = parsed.type
        logger.debug(
            "Bound item",
            extra={"item": item_name, "device_id": config.device_id, "kind": config.cmd_kind},
        )
        return config

    def remove_item(self, item_name: str) -> None:
        with self._lock:
            _ = self._configs.pop(item_name, None)
            _ = self._item_types.pop(item_name, None)

    def get_binding_config_for(self, item_name: str) -> BindingConfig | None:
        with self._lock:
            return self._configs.get(item_name)

    def get_item_type(self, item_name: str) -> ItemType:
        with self._lock:
            return self._item_types.get(item_name, ItemType.STRING)
