"""Device registry: device id -> receiver client."""

from __future__ import annotations

import threading
from collections.abc import Callable

from enigma2_bridge.devices import Enigma2Node
from enigma2_bridge.logging_abstraction import get_logger
from enigma2_bridge.structs import DeviceNode

logger = get_logger(__name__)

type NodeFactory = Callable[[str], DeviceNode]


class DeviceRegistry:
    """Owns every :class:`DeviceNode` of one binding instance.

    All access goes through a single lock, so the poll loop and configuration
    updates may touch the registry from different threads. Entries are never
    evicted; reconfiguration only adds nodes or updates their fields.
    """

    def __init__(self, node_factory: NodeFactory = Enigma2Node) -> None:
        self._nodes: dict[str, DeviceNode] = {}
        self._lock = threading.Lock()
        self._node_factory: NodeFactory = node_factory

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def __contains__(self, device_id: object) -> bool:
        with self._lock:
            return device_id in self._nodes

    def get(self, device_id: str) -> DeviceNode | None:
        with self._lock:
            return self._nodes.get(device_id)

    def get_or_create(self, device_id: str) -> DeviceNode:
        with self._lock:
            return self._get_or_create_locked(device_id)

    def update_node(self, device_id: str, attribute: str, value: str) -> DeviceNode:
        """Get or create ``device_id`` and set one of its fields, both under the lock."""
        with self._lock:
            node = self._get_or_create_locked(device_id)
            setattr(node, attribute, value)
            return node

    def _get_or_create_locked(self, device_id: str) -> DeviceNode:
        node = self._nodes.get(device_id)
        if node is None:
            node = self._node_factory(device_id)
            self._nodes[device_id] = node
            logger.debug("Created device node", extra={"device_id": device_id})
        return node

    def values(self) -> list[DeviceNode]:
        """Snapshot of the registered nodes, safe to iterate without the lock."""
        with self._lock:
            return list(self._nodes.values())

    def all_properly_configured(self) -> bool:
        with self._lock:
            return all(node.properly_configured() for node in self._nodes.values())

    async def close(self) -> None:
        """Release the HTTP resources of every node."""
        for node in self.values():
            await node.close()
