"""Process settings (environment) and the YAML binding/item configuration file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal, Self

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from enigma2_bridge.const import (
    DEFAULT_CONFIG_FILE_PATH,
    ENIGMA2_HTTP_TIMEOUT,
    ENIGMA2_MQTT_CONN_DELAY,
    ENIGMA2_MQTT_HOST,
    ENIGMA2_MQTT_PORT,
    ENIGMA2_POLL_CONCURRENCY,
    ENIGMA2_TOPIC,
    YES_ANSWER,
)
from enigma2_bridge.exceptions import ConfigurationError
from enigma2_bridge.logging_abstraction import get_logger

logger = get_logger(__name__)


class BridgeEnv(BaseModel):
    """Environment-driven process settings."""

    mqtt_host: str = ENIGMA2_MQTT_HOST
    mqtt_port: int = ENIGMA2_MQTT_PORT
    mqtt_user: str | None = None
    mqtt_pass: str | None = None
    mqtt_topic: str = ENIGMA2_TOPIC
    mqtt_conn_delay: int = ENIGMA2_MQTT_CONN_DELAY
    http_timeout: float = ENIGMA2_HTTP_TIMEOUT
    poll_concurrency: int = Field(default=ENIGMA2_POLL_CONCURRENCY, ge=1)
    config_file: Path = Path(DEFAULT_CONFIG_FILE_PATH)
    debug: bool = False
    log_format: Literal["json", "human", "both"] = "human"
    log_json_file: str | None = None
    log_human_output: str = "stdout"
    perf_tracking: bool = True
    perf_threshold_ms: int = Field(default=1000, ge=0)

    @field_validator("debug", "perf_tracking", mode="before")
    @classmethod
    def _parse_flag(cls, v: object) -> object:
        if isinstance(v, str):
            return v.casefold() in YES_ANSWER
        return v

    @classmethod
    def from_env(cls) -> Self:
        """Read the current environment (after any dotenv file was loaded)."""
        values: dict[str, str] = {}
        for field, var in (
            ("mqtt_host", "ENIGMA2_MQTT_HOST"),
            ("mqtt_port", "ENIGMA2_MQTT_PORT"),
            ("mqtt_user", "ENIGMA2_MQTT_USER"),
            ("mqtt_pass", "ENIGMA2_MQTT_PASS"),
            ("mqtt_topic", "ENIGMA2_TOPIC"),
            ("mqtt_conn_delay", "ENIGMA2_MQTT_CONN_DELAY"),
            ("http_timeout", "ENIGMA2_HTTP_TIMEOUT"),
            ("poll_concurrency", "ENIGMA2_POLL_CONCURRENCY"),
            ("config_file", "ENIGMA2_CONFIG_FILE"),
            ("debug", "ENIGMA2_DEBUG"),
            ("log_format", "ENIGMA2_LOG_FORMAT"),
            ("log_json_file", "ENIGMA2_LOG_JSON_FILE"),
            ("log_human_output", "ENIGMA2_LOG_HUMAN_OUTPUT"),
            ("perf_tracking", "ENIGMA2_PERF_TRACKING"),
            ("perf_threshold_ms", "ENIGMA2_PERF_THRESHOLD_MS"),
        ):
            raw = os.environ.get(var)
            if raw:
                values[field] = raw
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            bad = e.errors()[0]
            raise ConfigurationError(str(bad["loc"][0]), bad.get("input"), bad["msg"]) from e


class BridgeFileConfig(BaseModel):
    """Parsed contents of the configuration file."""

    binding: dict[str, str] = Field(default_factory=dict)
    items: dict[str, dict[str, Any]] = Field(default_factory=dict)


def _stringify_binding(raw: object) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError("binding", raw, "expected a mapping of configuration keys")
    # YAML turns "refresh: 30000" into an int; the reconciler expects text
    return {str(k): "" if v is None else str(v) for k, v in raw.items()}


def parse_config(data: object) -> BridgeFileConfig:
    if data is None:
        return BridgeFileConfig()
    if not isinstance(data, dict):
        raise ConfigurationError("<root>", type(data).__name__, "expected a mapping")

    items = data.get("items") or {}
    if not isinstance(items, dict) or not all(isinstance(v, dict) for v in items.values()):
        raise ConfigurationError("items", items, "expected a mapping of item name to descriptor")

    return BridgeFileConfig(binding=_stringify_binding(data.get("binding")), items=items)


def load_config_file(config_file: Path) -> BridgeFileConfig:
    """Load and validate a YAML configuration file.

    Raises:
        ConfigurationError: the file is missing, unreadable or malformed.

    """
    logger.debug("Parsing config file: %s", config_file)
    try:
        with config_file.open() as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(str(config_file), None, f"cannot read file: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(str(config_file), None, f"invalid YAML: {e}") from e

    config = parse_config(data)
    logger.info(
        "Parsed config",
        extra={"path": str(config_file), "binding_keys": len(config.binding), "items": len(config.items)},
    )
    return config
