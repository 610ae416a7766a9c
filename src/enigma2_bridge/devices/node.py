"""OpenWebif HTTP client for one Enigma2 receiver."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

import aiohttp

from enigma2_bridge.const import ENIGMA2_HTTP_TIMEOUT, KEY_PLAY_PAUSE, NUMBER_KEY_CODES
from enigma2_bridge.devices.responses import get_content_of_element, get_services
from enigma2_bridge.exceptions import InvalidCommandError, TransportError
from enigma2_bridge.instrumentation import timed_device_call
from enigma2_bridge.logging_abstraction import get_logger
from enigma2_bridge.structs import CommandKind, PowerState

logger = get_logger(__name__)


class Enigma2Node:
    """Connection settings and operations for one receiver.

    ``hostname``, ``user_name`` and ``password`` are filled in one at a time
    as configuration keys arrive; the node is usable once all three are set.
    """

    lp: str = "Enigma2Node:"

    def __init__(self, device_id: str, request_timeout: float = ENIGMA2_HTTP_TIMEOUT) -> None:
        self.id: str = device_id
        self.hostname: str = ""
        self.user_name: str = ""
        self.password: str = ""
        self.request_timeout: float = request_timeout
        self.http_session: aiohttp.ClientSession | None = None

    def __repr__(self) -> str:
        return f"<Enigma2Node id={self.id} hostname={self.hostname!r} user={self.user_name!r}>"

    def properly_configured(self) -> bool:
        return bool(self.hostname and self.user_name and self.password)

    @property
    def base_url(self) -> str:
        return f"http://{self.hostname}"

    async def _check_session(self) -> aiohttp.ClientSession:
        if self.http_session is None or self.http_session.closed:
            logger.debug("%s Creating new aiohttp ClientSession", self.lp, extra={"device_id": self.id})
            self.http_session = aiohttp.ClientSession()
        return self.http_session

    async def close(self) -> None:
        """Close the aiohttp session if one is open."""
        if self.http_session and not self.http_session.closed:
            logger.debug("%s Closing aiohttp ClientSession", self.lp, extra={"device_id": self.id})
            await self.http_session.close()
        self.http_session = None

    @timed_device_call
    async def _request(self, operation: str, path: str, params: dict[str, str] | None = None) -> str:
        """GET ``path`` on the receiver and return the response body."""
        session = await self._check_session()
        try:
            auth = aiohttp.BasicAuth(self.user_name, self.password)
            async with session.get(
                f"{self.base_url}{path}",
                params=params,
                auth=auth,
                timeout=aiohttp.ClientTimeout(total=self.request_timeout),
            ) as r:
                r.raise_for_status()
                return await r.text()
        except aiohttp.ClientResponseError as e:
            raise TransportError(self.id, operation, f"HTTP {e.status} {e.message}") from e
        except TimeoutError as e:
            raise TransportError(self.id, operation, f"timed out after {self.request_timeout}s") from e
        except aiohttp.ClientError as e:
            raise TransportError(self.id, operation, str(e) or type(e).__name__) from e
        except ValueError as e:
            # ':' in the login or credentials/hostname that cannot be encoded into a request
            raise TransportError(self.id, operation, f"invalid connection settings: {e}") from e

    def _element(self, operation: str, content: str, element: str) -> str | None:
        try:
            return get_content_of_element(content, element)
        except ET.ParseError as e:
            raise TransportError(self.id, operation, f"malformed response: {e}") from e

    async def _read(self, operation: str, path: str, element: str) -> str | None:
        if not self.properly_configured():
            logger.debug("%s %s skipped, node not configured", self.lp, operation, extra={"device_id": self.id})
            return None
        content = await self._request(operation, path)
        return self._element(operation, content, element)

    async def get_volume(self) -> str | None:
        return await self._read("get_volume", "/web/vol", "e2current")

    async def get_channel(self) -> str | None:
        return await self._read("get_channel", "/web/getcurrent", "e2servicename")

    async def get_on_off(self) -> str | None:
        in_standby = await self._read("get_on_off", "/web/powerstate", "e2instandby")
        if in_standby is None:
            return None
        return "OFF" if in_standby.casefold() == "true" else "ON"

    async def set_volume(self, command: str) -> None:
        """Set an absolute volume (0-100) or step it with INCREASE/DECREASE."""
        normalized = command.strip().upper()
        if normalized == "INCREASE":
            setting = "up"
        elif normalized == "DECREASE":
            setting = "down"
        else:
            try:
                level = Decimal(normalized).quantize(Decimal(1), rounding=ROUND_HALF_UP)
            except InvalidOperation as e:
                raise InvalidCommandError(CommandKind.VOLUME, command, "not a number") from e
            setting = f"set{min(100, max(0, int(level)))}"
        _ = await self._request("set_volume", "/web/vol", {"set": setting})

    async def set_channel(self, command: str) -> None:
        """Switch by channel number (typed as number keys) or by service name."""
        channel = command.strip()
        if not channel:
            raise InvalidCommandError(CommandKind.CHANNEL, command, "empty channel")

        if channel.isdigit():
            for digit in channel:
                await self._send_key("set_channel", NUMBER_KEY_CODES[digit])
            return

        content = await self._request("set_channel", "/web/getallservices")
        try:
            services = get_services(content)
        except ET.ParseError as e:
            raise TransportError(self.id, "set_channel", f"malformed response: {e}") from e

        wanted = channel.casefold()
        ref = next((ref for name, ref in services if name.casefold() == wanted), None)
        if ref is None:
            raise InvalidCommandError(CommandKind.CHANNEL, command, "no such service")
        logger.debug("%s Zapping to %s (%s)", self.lp, channel, ref, extra={"device_id": self.id})
        _ = await self._request("set_channel", "/web/zap", {"sRef": ref})

    async def send_play_pause(self, command: str) -> None:
        await self._send_key("send_play_pause", KEY_PLAY_PAUSE)

    async def send_mute_unmute(self, command: str) -> None:
        _ = await self._request("send_mute_unmute", "/web/vol", {"set": "mute"})

    async def send_rc_command(self, command: str, code: str) -> None:
        _ = await self._request("send_rc_command", "/web/remotecontrol", {"command": code})

    async def send_on_off(self, command: str, off_mode: PowerState) -> None:
        normalized = command.strip().upper()
        if normalized == "ON":
            new_state = PowerState.WAKEUP
        elif normalized == "OFF":
            new_state = off_mode
        else:
            raise InvalidCommandError(CommandKind.POWERSTATE, command, "expected ON or OFF")
        _ = await self._request("send_on_off", "/web/powerstate", {"newstate": str(int(new_state))})

    async def _send_key(self, operation: str, key_code: int) -> None:
        _ = await self._request(operation, "/web/remotecontrol", {"command": str(key_code)})
