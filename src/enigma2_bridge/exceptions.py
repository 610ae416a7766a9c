"""Exception hierarchy for the Enigma2 bridge.

Only :class:`ConfigurationError` ever rejects a whole operation; every other
error is confined to one device, one command or one poll of one item.
"""

from __future__ import annotations


class Enigma2BridgeError(Exception):
    """Base class for all bridge errors."""


class ConfigurationError(Enigma2BridgeError):
    """A configuration value could not be accepted.

    Raised when:
    - The ``refresh`` key is not an integer
    - An item descriptor names an unknown command kind or item type
    - A configuration file cannot be read or parsed

    Attributes:
        key: Configuration key (or item name) that was rejected
        value: Offending value
        reason: Specific failure reason

    """

    def __init__(self, key: str, value: object, reason: str) -> None:
        self.key: str = key
        self.value: object = value
        self.reason: str = reason
        super().__init__(f"Invalid configuration for '{key}' ({value!r}): {reason}")


class UnknownDeviceError(Enigma2BridgeError):
    """A binding references a device id that is not in the registry.

    Attributes:
        device_id: The unresolved device id

    """

    def __init__(self, device_id: str) -> None:
        self.device_id: str = device_id
        super().__init__(f'Unknown deviceId "{device_id}"')


class UnsupportedCommandError(Enigma2BridgeError):
    """The router has no handler for a command kind."""

    def __init__(self, cmd_kind: object) -> None:
        self.cmd_kind: object = cmd_kind
        super().__init__(f'Unknown cmdId "{cmd_kind}"')


class InvalidCommandError(Enigma2BridgeError):
    """A command payload cannot be interpreted for its command kind.

    Attributes:
        cmd_kind: Command kind of the binding
        command: Raw command payload

    """

    def __init__(self, cmd_kind: object, command: str, reason: str = "") -> None:
        self.cmd_kind: object = cmd_kind
        self.command: str = command
        suffix = f": {reason}" if reason else ""
        super().__init__(f"Invalid command {command!r} for {cmd_kind}{suffix}")


class TransportError(Enigma2BridgeError):
    """A request to a receiver failed (network error, HTTP status, timeout, bad XML).

    Attributes:
        device_id: Device the request was sent to
        operation: Device operation that failed (e.g. ``get_volume``)
        reason: Specific failure reason

    """

    def __init__(self, device_id: str, operation: str, reason: str) -> None:
        self.device_id: str = device_id
        self.operation: str = operation
        self.reason: str = reason
        super().__init__(f"{operation} failed on device '{device_id}': {reason}")
