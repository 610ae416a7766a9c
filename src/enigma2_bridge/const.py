import os

from enigma2_bridge import __version__

__all__ = [
    "DEFAULT_CONFIG_FILE_PATH",
    "DEFAULT_REFRESH_INTERVAL_MS",
    "ENIGMA2_DEBUG",
    "ENIGMA2_HTTP_TIMEOUT",
    "ENIGMA2_LOG_FORMAT",
    "ENIGMA2_LOG_HUMAN_OUTPUT",
    "ENIGMA2_LOG_JSON_FILE",
    "ENIGMA2_MQTT_CONN_DELAY",
    "ENIGMA2_MQTT_HOST",
    "ENIGMA2_MQTT_PASS",
    "ENIGMA2_MQTT_PORT",
    "ENIGMA2_MQTT_USER",
    "ENIGMA2_PERF_THRESHOLD_MS",
    "ENIGMA2_PERF_TRACKING",
    "ENIGMA2_POLL_CONCURRENCY",
    "ENIGMA2_TOPIC",
    "ENIGMA2_VERSION",
    "KEY_PLAY_PAUSE",
    "MIN_POLL_SLEEP_MS",
    "MQTT_CLIENT_START_TASK_NAME",
    "NUMBER_KEY_CODES",
    "POLL_TASK_NAME",
    "REFRESH_CONFIG_KEY",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")
ENIGMA2_VERSION: str = __version__


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# Binding configuration
REFRESH_CONFIG_KEY: str = "refresh"
DEFAULT_REFRESH_INTERVAL_MS: int = 60000
# floor for the sleep between poll ticks when refresh <= 0 is configured
MIN_POLL_SLEEP_MS: int = 1000
POLL_TASK_NAME: str = "Enigma2 Refresh Service"
MQTT_CLIENT_START_TASK_NAME: str = "MQTT_CLIENT_START"
DEFAULT_CONFIG_FILE_PATH: str = "./enigma2.yaml"

# OpenWebif remote control key codes (linux input event codes)
KEY_PLAY_PAUSE: int = 164
NUMBER_KEY_CODES: dict[str, int] = {
    "0": 11,
    "1": 2,
    "2": 3,
    "3": 4,
    "4": 5,
    "5": 6,
    "6": 7,
    "7": 8,
    "8": 9,
    "9": 10,
}

ENIGMA2_HTTP_TIMEOUT: float = _env_float("ENIGMA2_HTTP_TIMEOUT", 5.0)
ENIGMA2_POLL_CONCURRENCY: int = max(1, _env_int("ENIGMA2_POLL_CONCURRENCY", 4))

ENIGMA2_MQTT_HOST: str = os.environ.get("ENIGMA2_MQTT_HOST", "localhost")
ENIGMA2_MQTT_PORT: int = _env_int("ENIGMA2_MQTT_PORT", 1883)
ENIGMA2_MQTT_USER: str | None = os.environ.get("ENIGMA2_MQTT_USER") or None
ENIGMA2_MQTT_PASS: str | None = os.environ.get("ENIGMA2_MQTT_PASS") or None
ENIGMA2_TOPIC: str = os.environ.get("ENIGMA2_TOPIC", "enigma2")
ENIGMA2_MQTT_CONN_DELAY: int = _env_int("ENIGMA2_MQTT_CONN_DELAY", 10)

ENIGMA2_DEBUG: bool = os.environ.get("ENIGMA2_DEBUG", "0").casefold() in YES_ANSWER

# Logging and perf defaults for loggers created at import time; main() re-applies
# them from BridgeEnv once the --env file is loaded
ENIGMA2_LOG_FORMAT: str = os.environ.get("ENIGMA2_LOG_FORMAT", "human")  # "json", "human", or "both"
ENIGMA2_LOG_JSON_FILE: str | None = os.environ.get("ENIGMA2_LOG_JSON_FILE") or None
ENIGMA2_LOG_HUMAN_OUTPUT: str = os.environ.get("ENIGMA2_LOG_HUMAN_OUTPUT", "stdout")  # "stdout", "stderr", or file path

# Performance Instrumentation
ENIGMA2_PERF_TRACKING: bool = os.environ.get("ENIGMA2_PERF_TRACKING", "true").casefold() in YES_ANSWER
ENIGMA2_PERF_THRESHOLD_MS: int = _env_int("ENIGMA2_PERF_THRESHOLD_MS", 1000)
