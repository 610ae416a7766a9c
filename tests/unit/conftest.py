"""Shared fixtures for unit tests.

This module provides reusable fixtures for testing Enigma2 bridge components.
"""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from enigma2_bridge.registry import DeviceRegistry
from enigma2_bridge.structs import BindingConfig, CommandKind, Direction, ItemType


def make_mock_node(device_id: str, *, configured: bool = True) -> MagicMock:
    """Mock DeviceNode with async getters/setters.

    Getters return plausible receiver values; every setter is an AsyncMock.
    """
    node: MagicMock = MagicMock()
    node.id = device_id
    node.hostname = "192.168.1.20" if configured else ""
    node.user_name = "root" if configured else ""
    node.password = "dreambox" if configured else ""
    node.properly_configured = MagicMock(return_value=configured)
    node.get_volume = AsyncMock(return_value="23")
    node.get_channel = AsyncMock(return_value="Das Erste HD")
    node.get_on_off = AsyncMock(return_value="ON")
    for name in (
        "set_volume",
        "set_channel",
        "send_play_pause",
        "send_mute_unmute",
        "send_rc_command",
        "send_on_off",
        "close",
    ):
        setattr(node, name, AsyncMock())
    return node


class FakeProvider:
    """In-memory BindingProvider."""

    def __init__(self) -> None:
        self.configs: dict[str, BindingConfig] = {}
        self.types: dict[str, ItemType] = {}

    def bind(
        self,
        item_name: str,
        device_id: str,
        cmd_kind: CommandKind,
        *,
        direction: Direction = Direction.OUTBOUND,
        cmd_value: str | None = None,
        item_type: ItemType = ItemType.STRING,
    ) -> BindingConfig:
        config = BindingConfig(
            item_name=item_name,
            device_id=device_id,
            cmd_kind=cmd_kind,
            direction=direction,
            cmd_value=cmd_value,
        )
        self.configs[item_name] = config
        self.types[item_name] = item_type
        return config

    @property
    def item_names(self) -> list[str]:
        return list(self.configs)

    def get_binding_config_for(self, item_name: str) -> BindingConfig | None:
        return self.configs.get(item_name)

    def get_item_type(self, item_name: str) -> ItemType:
        return self.types.get(item_name, ItemType.STRING)


@pytest.fixture
def created_nodes() -> dict[str, MagicMock]:
    """Nodes handed out by ``mock_node_factory``, keyed by device id."""
    return {}


@pytest.fixture
def mock_node_factory(created_nodes: dict[str, MagicMock]) -> Callable[[str], MagicMock]:
    def _factory(device_id: str) -> MagicMock:
        node = make_mock_node(device_id)
        created_nodes[device_id] = node
        return node

    return _factory


@pytest.fixture
def mock_registry(mock_node_factory: Callable[[str], MagicMock]) -> DeviceRegistry:
    """Registry that builds mock nodes instead of HTTP clients."""
    return DeviceRegistry(mock_node_factory)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def mock_publish() -> AsyncMock:
    """Bus ``postUpdate`` callback."""
    return AsyncMock()


@pytest.fixture
def provider_factory() -> Callable[[], FakeProvider]:
    return FakeProvider


@pytest.fixture
def node_maker() -> Callable[..., MagicMock]:
    return make_mock_node
