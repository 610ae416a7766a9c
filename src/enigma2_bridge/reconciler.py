"""Apply a flat configuration snapshot to a :class:`DeviceRegistry`.

Snapshot keys are either ``refresh`` (poll interval in milliseconds) or
``<deviceId>:<option>`` with option one of ``hostname``, ``username`` or
``password``. Reconciliation is additive: nodes are created on first sight and
their fields overwritten, but nodes absent from the snapshot are kept.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

from enigma2_bridge.const import REFRESH_CONFIG_KEY
from enigma2_bridge.exceptions import ConfigurationError
from enigma2_bridge.logging_abstraction import get_logger
from enigma2_bridge.registry import DeviceRegistry

logger = get_logger(__name__)

# configuration option -> DeviceNode attribute
DEVICE_OPTIONS: dict[str, str] = {
    "hostname": "hostname",
    "username": "user_name",
    "password": "password",
}

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True, slots=True)
class Reconciliation:
    """Outcome of one reconciliation pass."""

    refresh_interval: int
    ready: bool
    applied_keys: int


def parse_refresh_interval(value: object, current: int) -> int:
    """Return the interval in ``value``, or ``current`` if it is absent or blank.

    Raises:
        ConfigurationError: ``value`` is present but not an integer.

    """
    if value is None:
        return current
    text = str(value).strip()
    if not text:
        return current
    # int() alone would also take "1_000" and non-ASCII digits
    if _INTEGER_RE.fullmatch(text) is None:
        raise ConfigurationError(REFRESH_CONFIG_KEY, value, "expected an integer number of milliseconds")
    return int(text)


def reconcile(registry: DeviceRegistry, config: Mapping[str, object], refresh_interval: int) -> Reconciliation:
    """Merge ``config`` into ``registry`` and recompute readiness.

    The refresh interval is validated before anything is touched, so a
    rejected snapshot leaves the registry exactly as it was.
    """
    new_interval = parse_refresh_interval(config.get(REFRESH_CONFIG_KEY), refresh_interval)

    applied = 0
    for key, value in config.items():
        key_elements = key.split(":")
        if len(key_elements) < 2:
            continue

        device_id, option = key_elements[0], key_elements[1]
        attribute = DEVICE_OPTIONS.get(option)
        if attribute is None:
            _ = registry.get_or_create(device_id)
            logger.warning("Ignoring unknown device option", extra={"key": key, "device_id": device_id})
            continue

        _ = registry.update_node(device_id, attribute, "" if value is None else str(value))
        applied += 1

    ready = registry.all_properly_configured()
    logger.debug(
        "Configuration reconciled",
        extra={"devices": len(registry), "applied_keys": applied, "ready": ready, "refresh_ms": new_interval},
    )
    return Reconciliation(refresh_interval=new_interval, ready=ready, applied_keys=applied)
