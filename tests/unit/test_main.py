"""Unit tests for the CLI entry point and application wiring."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from _pytest.monkeypatch import MonkeyPatch

from enigma2_bridge.config import BridgeEnv
from enigma2_bridge.instrumentation import configure_perf_tracking, perf_settings
from enigma2_bridge.logging_abstraction import JSONFormatter, configure_logging
from enigma2_bridge.main import Enigma2Bridge, apply_settings, load_env_file, load_settings, parse_cli
from enigma2_bridge.provider import ItemBindingProvider

CONFIG_YAML = """\
binding:
  refresh: 15000
  box:hostname: 10.0.0.5
  box:username: root
  box:password: pw
items:
  Box_Volume:
    device: box
    command: volume
    type: number
"""


class TestParseCli:
    def test_defaults(self):
        args = parse_cli([])

        assert args.debug is False
        assert args.env is None
        assert args.config is None

    def test_options(self):
        args = parse_cli(["--config", "/etc/enigma2.yaml", "-D", "--env", ".env"])

        assert args.config == Path("/etc/enigma2.yaml")
        assert args.debug is True
        assert args.env == Path(".env")


class TestLoadEnvFile:
    def test_loads_variables(self, tmp_path: Path, monkeypatch: MonkeyPatch):
        monkeypatch.setenv("ENIGMA2_TOPIC", "")
        env_file = tmp_path / ".env"
        _ = env_file.write_text("ENIGMA2_TOPIC=from_dotenv\n")

        load_env_file(env_file)

        assert os.environ["ENIGMA2_TOPIC"] == "from_dotenv"

    def test_missing_file_is_logged(self, tmp_path: Path, caplog: pytest.LogCaptureFixture):
        load_env_file(tmp_path / "nope.env")

        assert "Environment file not found" in caplog.text


class TestLoadSettings:
    def test_config_file_from_env_file(self, tmp_path: Path, monkeypatch: MonkeyPatch):
        # Arrange
        monkeypatch.setenv("ENIGMA2_CONFIG_FILE", "")
        config_file = tmp_path / "custom.yaml"
        env_file = tmp_path / ".env"
        _ = env_file.write_text(f"ENIGMA2_CONFIG_FILE={config_file}\n")
        args = parse_cli(["--env", str(env_file)])

        # Act
        _, resolved = load_settings(args)

        # Assert
        assert resolved == config_file.resolve()

    def test_cli_config_overrides_env_file(self, tmp_path: Path, monkeypatch: MonkeyPatch):
        monkeypatch.setenv("ENIGMA2_CONFIG_FILE", "")
        env_file = tmp_path / ".env"
        _ = env_file.write_text(f"ENIGMA2_CONFIG_FILE={tmp_path / 'custom.yaml'}\n")
        args = parse_cli(["--env", str(env_file), "--config", str(tmp_path / "cli.yaml")])

        _, resolved = load_settings(args)

        assert resolved == (tmp_path / "cli.yaml").resolve()

    def test_default_config_file(self, monkeypatch: MonkeyPatch):
        monkeypatch.setenv("ENIGMA2_CONFIG_FILE", "")

        _, resolved = load_settings(parse_cli([]))

        assert resolved == Path("./enigma2.yaml").resolve()

    def test_log_and_perf_settings_from_env_file(self, tmp_path: Path, monkeypatch: MonkeyPatch):
        for var in ("ENIGMA2_LOG_FORMAT", "ENIGMA2_PERF_TRACKING", "ENIGMA2_PERF_THRESHOLD_MS"):
            monkeypatch.setenv(var, "")
        env_file = tmp_path / ".env"
        _ = env_file.write_text(
            "ENIGMA2_LOG_FORMAT=json\nENIGMA2_PERF_TRACKING=false\nENIGMA2_PERF_THRESHOLD_MS=250\n",
        )

        env, _ = load_settings(parse_cli(["--env", str(env_file)]))

        assert env.log_format == "json"
        assert env.perf_tracking is False
        assert env.perf_threshold_ms == 250


class TestApplySettings:
    def test_rebuilds_handlers_and_perf_tracking(self, tmp_path: Path):
        # Arrange
        json_file = tmp_path / "logs" / "bridge.json"
        env = BridgeEnv(
            log_format="json",
            log_json_file=str(json_file),
            perf_tracking=False,
            perf_threshold_ms=250,
        )
        saved_perf = (perf_settings.enabled, perf_settings.threshold_ms)
        root = logging.getLogger("enigma2_bridge")

        # Act
        try:
            apply_settings(env, debug=True)
            handlers = list(root.handlers)
            level = root.level
            perf = (perf_settings.enabled, perf_settings.threshold_ms)
        finally:
            _ = configure_logging("human", None, "stdout", logging.INFO)
            configure_perf_tracking(*saved_perf)

        # Assert
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.FileHandler)
        assert isinstance(handlers[0].formatter, JSONFormatter)
        assert level == logging.DEBUG
        assert perf == (False, 250)
        assert json_file.exists()


class TestEnigma2Bridge:
    @pytest.mark.asyncio
    async def test_start_loads_config_file(self, tmp_path: Path):
        # Arrange
        config_file = tmp_path / "enigma2.yaml"
        _ = config_file.write_text(CONFIG_YAML)
        app = Enigma2Bridge(BridgeEnv(), config_file)

        # Act
        with (
            patch.object(app.mqtt, "start", new=AsyncMock()) as mqtt_start,
            patch.object(app.binding.poller, "start") as poll_start,
        ):
            await app.start()

        # Assert
        mqtt_start.assert_awaited_once()
        poll_start.assert_called()
        assert app.binding.refresh_interval == 15000
        assert app.binding.properly_configured is True
        assert app.binding.provides_binding_for("Box_Volume") is True
        assert app.binding.registry.get("box") is not None

    @pytest.mark.asyncio
    async def test_start_without_config_file(self, tmp_path: Path):
        app = Enigma2Bridge(BridgeEnv(), tmp_path / "missing.yaml")

        with patch.object(app.mqtt, "start", new=AsyncMock()):
            await app.start()

        assert len(app.binding.providers) == 1
        assert isinstance(app.binding.providers[0], ItemBindingProvider)
        assert app.binding.properly_configured is False

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, tmp_path: Path):
        app = Enigma2Bridge(BridgeEnv(), tmp_path / "missing.yaml")

        with (
            patch.object(app.binding, "stop", new=AsyncMock()) as binding_stop,
            patch.object(app.mqtt, "stop", new=AsyncMock()) as mqtt_stop,
        ):
            await app.stop()
            await app.stop()

        binding_stop.assert_awaited_once()
        mqtt_stop.assert_awaited_once()

    def test_node_factory_uses_http_timeout(self, tmp_path: Path):
        app = Enigma2Bridge(BridgeEnv(http_timeout=1.5), tmp_path / "missing.yaml")

        node = app.binding.registry.get_or_create("box")

        assert node.request_timeout == 1.5  # type: ignore[attr-defined]
