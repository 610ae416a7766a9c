from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from functools import partial
from pathlib import Path

import dotenv
import uvloop

from enigma2_bridge.binding import Enigma2Binding
from enigma2_bridge.config import BridgeEnv, load_config_file
from enigma2_bridge.const import (
    DEFAULT_CONFIG_FILE_PATH,
    ENIGMA2_VERSION,
    MQTT_CLIENT_START_TASK_NAME,
)
from enigma2_bridge.devices import Enigma2Node
from enigma2_bridge.exceptions import ConfigurationError
from enigma2_bridge.instrumentation import configure_perf_tracking
from enigma2_bridge.logging_abstraction import configure_logging, get_logger
from enigma2_bridge.mqtt import MQTTBridge
from enigma2_bridge.provider import ItemBindingProvider

logger = get_logger(__name__)

# Suppress verbose third-party library logging
for _name in ("aiomqtt", "aiohttp"):
    logging.getLogger(_name).setLevel(logging.WARNING)


class Enigma2Bridge:
    """Wires the binding, its item provider and the MQTT adapter together."""

    lp: str = "Enigma2Bridge:"

    def __init__(self, env: BridgeEnv, config_file: Path) -> None:
        self.env: BridgeEnv = env
        self.config_file: Path = config_file
        self.mqtt: MQTTBridge = MQTTBridge(env)
        self.binding: Enigma2Binding = Enigma2Binding(
            publish=self.mqtt.publish_state,
            node_factory=partial(Enigma2Node, request_timeout=env.http_timeout),
            on_configured=self.mqtt.publish_configured,
            poll_concurrency=env.poll_concurrency,
        )
        self.mqtt.attach(self.binding)
        self._stopping: bool = False

    async def start(self) -> None:
        lp = f"{self.lp}start:"
        if self.config_file.exists():
            logger.info("%s Loading configuration", lp, extra={"config_path": str(self.config_file)})
            config = load_config_file(self.config_file)
            self.binding.add_binding_provider(ItemBindingProvider.from_items(config.items))
            _ = await self.binding.updated(config.binding)
        else:
            logger.warning(
                "%s Configuration file not found, waiting for configuration over MQTT",
                lp,
                extra={"config_path": str(self.config_file)},
            )
            self.binding.add_binding_provider(ItemBindingProvider())

        await self.binding.start()
        self.mqtt.start_task = asyncio.create_task(self.mqtt.start(), name=MQTT_CLIENT_START_TASK_NAME)
        try:
            await self.mqtt.start_task
        except asyncio.CancelledError:
            logger.info("%s MQTT client task cancelled", lp)

    async def stop(self) -> None:
        if self._stopping:
            return
        self._stopping = True
        logger.info("%s Shutting down...", self.lp)
        await self.binding.stop()
        await self.mqtt.stop()


def signal_handler(app: Enigma2Bridge, signum: int) -> None:
    logger.info("Enigma2 Bridge: Intercepted signal: %s (%s)", signal.Signals(signum).name, signum)
    _ = asyncio.get_running_loop().create_task(app.stop())


def load_env_file(env_file: Path) -> None:
    env_path = env_file.expanduser().resolve()
    if not env_path.exists():
        logger.error("Environment file not found", extra={"path": str(env_path)})
        return
    if dotenv.load_dotenv(env_path, override=True):
        logger.info("Environment variables loaded", extra={"source": str(env_path)})
    else:
        logger.warning("No environment variables loaded from file", extra={"path": str(env_path)})


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Enigma2 receiver MQTT bridge")
    _ = parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Path to the YAML binding configuration (default: $ENIGMA2_CONFIG_FILE or {DEFAULT_CONFIG_FILE_PATH})",
    )
    _ = parser.add_argument("-D", "--debug", action="store_true", help="Enable debug mode")
    _ = parser.add_argument("--env", help="Path to the environment file", default=None, type=Path)
    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> tuple[BridgeEnv, Path]:
    """Load the ``--env`` file, then read the settings and resolve the config file path.

    Raises:
        ConfigurationError: an environment value is invalid.

    """
    if args.env:
        load_env_file(args.env)
    env = BridgeEnv.from_env()
    config_file: Path = args.config if args.config is not None else env.config_file
    return env, config_file.expanduser().resolve()


def apply_settings(env: BridgeEnv, debug: bool = False) -> None:
    """Rebuild log handlers and perf tracking from the loaded settings."""
    level = logging.DEBUG if debug or env.debug else logging.INFO
    _ = configure_logging(env.log_format, env.log_json_file, env.log_human_output, level)
    configure_perf_tracking(env.perf_tracking, env.perf_threshold_ms)
    if level == logging.DEBUG:
        logger.info("Debug logging enabled")


async def run(env: BridgeEnv, config_file: Path) -> None:
    app = Enigma2Bridge(env, config_file)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, partial(signal_handler, app, sig))
    logger.debug("Signal handlers configured for SIGINT & SIGTERM")
    try:
        await app.start()
    finally:
        await app.stop()


def main() -> None:
    """Main entry point for the Enigma2 bridge."""
    logger.info("Starting Enigma2 Bridge", extra={"version": ENIGMA2_VERSION})
    args = parse_cli()

    try:
        env, config_file = load_settings(args)
        apply_settings(env, debug=args.debug)
        uvloop.run(run(env, config_file))
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")


if __name__ == "__main__":
    main()
