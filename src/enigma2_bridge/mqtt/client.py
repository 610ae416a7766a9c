from __future__ import annotations

import asyncio
import json
import uuid
from typing import TYPE_CHECKING

import aiomqtt

from enigma2_bridge.config import BridgeEnv
from enigma2_bridge.exceptions import ConfigurationError, TransportError
from enigma2_bridge.logging_abstraction import get_logger
from enigma2_bridge.structs import State

if TYPE_CHECKING:
    from enigma2_bridge.binding import Enigma2Binding

logger = get_logger(__name__)

BIRTH_MSG = "online"
WILL_MSG = "offline"


class MQTTBridge:
    """MQTT bus adapter for an :class:`Enigma2Binding`.

    Topics (``<base>`` is the configured base topic):

    - ``<base>/status``: ``online`` after connecting, ``offline`` as Last Will
    - ``<base>/item/<item>/set``: commands for an item
    - ``<base>/item/<item>/state``: polled item state
    - ``<base>/bridge/config/set``: JSON configuration snapshot
    - ``<base>/bridge/refresh/set``: poll all devices now
    - ``<base>/bridge/configured``: ``ON``/``OFF`` readiness
    """

    lp: str = "MQTTBridge:"

    def __init__(self, env: BridgeEnv, binding: Enigma2Binding | None = None) -> None:
        self.env: BridgeEnv = env
        self.topic: str = env.mqtt_topic
        self.binding: Enigma2Binding | None = binding
        self.client: aiomqtt.Client | None = None
        self.client_id: str = f"enigma2_bridge_{uuid.uuid4().hex[:8]}"
        self.start_task: asyncio.Task[None] | None = None
        self._connected: bool = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def attach(self, binding: Enigma2Binding) -> None:
        self.binding = binding

    def _get_connection_delay(self, lp: str) -> int:
        """Get connection retry delay, defaulting to 5 seconds."""
        delay = self.env.mqtt_conn_delay
        if delay <= 0:
            logger.debug(
                "%s MQTT connection delay is less than or equal to 0, which is probably a typo, setting to 5...",
                lp,
            )
            return 5
        return delay

    async def connect(self) -> bool:
        lp = f"{self.lp}connect:"
        self._connected = False
        logger.debug("%s Connecting to MQTT broker...", lp)
        self.client = aiomqtt.Client(
            hostname=self.env.mqtt_host,
            port=self.env.mqtt_port,
            username=self.env.mqtt_user,
            password=self.env.mqtt_pass,
            identifier=self.client_id,
            will=aiomqtt.Will(topic=f"{self.topic}/status", payload=WILL_MSG, retain=True),
        )
        try:
            _ = await self.client.__aenter__()
        except aiomqtt.MqttError:
            logger.exception("%s Connection failed [MqttError]", lp)
            return False

        self._connected = True
        logger.info(
            "%s Connected to MQTT broker: %s port: %s",
            lp,
            self.env.mqtt_host,
            self.env.mqtt_port,
        )
        _ = await self.send_birth_msg()
        return True

    async def start(self) -> None:
        lp = f"{self.lp}start:"
        try:
            while True:
                if await self.connect():
                    if self.binding is not None:
                        await self.publish_configured(self.binding.properly_configured)
                    try:
                        await self._start_receiver(lp)
                    except aiomqtt.MqttError as e:
                        logger.warning("%s Lost connection to MQTT broker: %s", lp, e)
                        self._connected = False
                delay = self._get_connection_delay(lp)
                logger.info(
                    "%s not connected to MQTT broker, sleeping for %s seconds before re-trying...",
                    lp,
                    delay,
                )
                await asyncio.sleep(delay)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s MQTT start() EXCEPTION", lp)

    async def stop(self) -> None:
        lp = f"{self.lp}stop:"
        if self._connected:
            _ = await self.send_will_msg()
        try:
            if self.client is not None:
                logger.debug("%s Disconnecting from broker...", lp)
                await self.client.__aexit__(None, None, None)
        except aiomqtt.MqttError as ce:
            logger.warning("%s MQTT disconnect failed: %s", lp, ce)
        else:
            logger.info("%s Disconnected from MQTT broker", lp)
        finally:
            self._connected = False
            if self.start_task and not self.start_task.done():
                logger.debug("%s FINISHING: Cancelling start task", lp)
                _ = self.start_task.cancel()

    async def _start_receiver(self, lp: str) -> None:
        assert self.client is not None, "client must be initialized"
        topics = [
            f"{self.topic}/item/+/set",
            f"{self.topic}/bridge/config/set",
            f"{self.topic}/bridge/refresh/set",
        ]
        for topic in topics:
            await self.client.subscribe(topic, qos=0)
        logger.debug("%s Subscribed to MQTT topics: %s. Waiting for MQTT messages...", lp, topics)
        await self.start_receiver_task()

    async def start_receiver_task(self) -> None:
        """Route messages from the subscribed topics until the connection drops."""
        lp = f"{self.lp}rcv:"
        assert self.client is not None, "client must be initialized"
        async for message in self.client.messages:
            topic_text = str(message.topic)
            payload = message.payload
            if isinstance(payload, (bytes, bytearray)):
                payload = payload.decode(errors="ignore")
            payload_text = "" if payload is None else str(payload)
            if not payload_text:
                logger.debug("%s Received empty payload for topic: %s , skipping...", lp, topic_text)
                continue
            try:
                await self.handle_message(topic_text, payload_text)
            except Exception:
                logger.exception("%s Error handling message for topic: %s", lp, topic_text)

    async def handle_message(self, topic: str, payload: str) -> None:
        lp = f"{self.lp}handle_message:"
        if self.binding is None:
            logger.warning("%s No binding attached, dropping message for %s", lp, topic)
            return

        parts = topic.split("/")
        base_len = len(self.topic.split("/"))
        tail = parts[base_len:]
        match tail:
            case ["item", item_name, "set"]:
                try:
                    _ = await self.binding.receive_command(item_name, payload)
                except TransportError as e:
                    logger.error("%s %s", lp, e, extra={"item": item_name})
            case ["bridge", "config", "set"]:
                await self._apply_config(payload, lp)
            case ["bridge", "refresh", "set"]:
                try:
                    published = await self.binding.poller.trigger_refresh()
                except TransportError as e:
                    logger.error("%s %s", lp, e)
                else:
                    logger.info("%s Manual refresh published %d state(s)", lp, published)
            case _:
                logger.debug("%s Unhandled topic: %s", lp, topic)

    async def _apply_config(self, payload: str, lp: str) -> None:
        assert self.binding is not None, "binding must be attached"
        try:
            snapshot = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.error("%s Configuration payload is not valid JSON: %s", lp, e)
            return
        if snapshot is not None and not isinstance(snapshot, dict):
            logger.error("%s Configuration payload must be a JSON object", lp)
            return
        if snapshot is not None:
            snapshot = {str(k): "" if v is None else str(v) for k, v in snapshot.items()}
        try:
            _ = await self.binding.updated(snapshot)
        except ConfigurationError as e:
            logger.error("%s Configuration rejected: %s", lp, e)

    async def send_birth_msg(self) -> bool:
        return await self._publish_status(BIRTH_MSG, f"{self.lp}send_birth_msg:")

    async def send_will_msg(self) -> bool:
        return await self._publish_status(WILL_MSG, f"{self.lp}send_will_msg:")

    async def _publish_status(self, msg: str, lp: str) -> bool:
        if not self._connected:
            return False
        assert self.client is not None, "client must be initialized"
        logger.debug("%s Sending (%s) to %s/status", lp, msg, self.topic)
        try:
            await self.client.publish(f"{self.topic}/status", msg.encode(), qos=0, retain=True)
        except aiomqtt.MqttError as mqtt_err:
            logger.warning("%s [MqttError] -> %s", lp, mqtt_err)
            self._connected = False
            return False
        return True

    async def publish(self, topic: str, msg_data: bytes, retain: bool = False) -> bool:
        """Publish a message to the MQTT broker."""
        lp = f"{self.lp}publish:"
        if not self._connected:
            return False
        assert self.client is not None, "client must be initialized"
        try:
            await self.client.publish(topic, msg_data, qos=0, retain=retain)
        except aiomqtt.MqttError as mqtt_err:
            logger.warning("%s [MqttError] -> %s", lp, mqtt_err)
            self._connected = False
            return False
        return True

    async def publish_state(self, item_name: str, state: State) -> None:
        """``postUpdate`` for the binding: fire and forget."""
        _ = await self.publish(f"{self.topic}/item/{item_name}/state", str(state).encode())

    async def publish_configured(self, ready: bool) -> None:
        _ = await self.publish(f"{self.topic}/bridge/configured", b"ON" if ready else b"OFF", retain=True)
