"""Logging layer for the Enigma2 bridge.

JSON and human-readable output, structured ``extra`` context, a TRACE level
below DEBUG, and a per-task log scope id so that all lines emitted during one
poll tick or one command can be grouped together.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import uuid
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import cast, override

__all__ = [
    "TRACE",
    "BridgeLogger",
    "HumanReadableFormatter",
    "JSONFormatter",
    "configure_logging",
    "current_scope",
    "get_logger",
    "log_scope",
]

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_scope_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("enigma2_log_scope", default=None)


def current_scope() -> str | None:
    """Return the log scope id of the running task, if any."""
    return _scope_id.get()


@contextmanager
def log_scope(kind: str) -> Generator[str]:
    """Tag every log line inside the block with ``<kind>-<8 hex chars>``.

    Scopes nest; the previous id is restored on exit.
    """
    scope = f"{kind}-{uuid.uuid4().hex[:8]}"
    token = _scope_id.set(scope)
    try:
        yield scope
    finally:
        _scope_id.reset(token)


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
            "scope": current_scope(),
        }

        extra_data = getattr(record, "extra_data", None)
        if isinstance(extra_data, Mapping) and extra_data:
            log_data["context"] = dict(cast("Mapping[str, object]", extra_data))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``timestamp level [module:line] [scope] > message | k=v``"""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] %(scope)s > %(message)s",
            datefmt="%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        scope = current_scope()
        record.scope = f"[{scope}]" if scope else "[-]"
        formatted = super().format(record)

        extra_data = getattr(record, "extra_data", None)
        if isinstance(extra_data, Mapping) and extra_data:
            context_map = cast("Mapping[str, object]", extra_data)
            formatted = f"{formatted} | " + " | ".join(f"{k}={v}" for k, v in context_map.items())

        return formatted


class BridgeLogger:
    """Thin wrapper around :class:`logging.Logger` with structured context support."""

    def __init__(
        self,
        name: str,
        log_format: str = "human",
        json_file: str | Path | None = None,
        human_output: str | None = "stdout",
    ) -> None:
        self.name: str = name
        self.logger: logging.Logger = logging.getLogger(name)
        self.log_format: str = log_format

        from enigma2_bridge.const import ENIGMA2_DEBUG

        # only the package root logger owns handlers, children propagate to it
        root_name = name.split(".", 1)[0]
        if name != root_name:
            _ = BridgeLogger(root_name, log_format, json_file, human_output)
        elif not self.logger.handlers:
            self.logger.setLevel(logging.DEBUG if ENIGMA2_DEBUG else logging.INFO)
            self._configure_handlers(json_file, human_output)

    def _configure_handlers(self, json_file: str | Path | None, human_output: str | None) -> None:
        if self.log_format in ("json", "both") and json_file:
            try:
                json_path = Path(json_file)
                json_path.parent.mkdir(parents=True, exist_ok=True)
                json_handler = logging.FileHandler(json_path, mode="a")
            except OSError as e:
                print(f"Warning: Failed to create JSON log file {json_file}: {e}", file=sys.stderr)
            else:
                json_handler.setFormatter(JSONFormatter())
                self.logger.addHandler(json_handler)

        if self.log_format in ("human", "both"):
            normalized_output = human_output or "stdout"
            human_handler: logging.Handler
            if normalized_output == "stdout":
                human_handler = logging.StreamHandler(sys.stdout)
            elif normalized_output == "stderr":
                human_handler = logging.StreamHandler(sys.stderr)
            else:
                try:
                    human_path = Path(normalized_output)
                    human_path.parent.mkdir(parents=True, exist_ok=True)
                    human_handler = logging.FileHandler(human_path, mode="a")
                except OSError as e:
                    print(f"Warning: Failed to create human log file {human_output}: {e}", file=sys.stderr)
                    human_handler = logging.StreamHandler(sys.stdout)
            human_handler.setFormatter(HumanReadableFormatter())
            self.logger.addHandler(human_handler)

    def _log(
        self,
        level: int,
        msg: str,
        *args: object,
        extra: Mapping[str, object] | None = None,
        exc_info: bool = False,
    ) -> None:
        extra_payload = {"extra_data": dict(extra)} if extra else None
        self.logger.log(level, msg, *args, extra=extra_payload, exc_info=exc_info, stacklevel=3)

    def trace(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(TRACE, msg, *args, extra=extra)

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.DEBUG, msg, *args, extra=extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.INFO, msg, *args, extra=extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.WARNING, msg, *args, extra=extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.ERROR, msg, *args, extra=extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._log(logging.ERROR, msg, *args, extra=extra, exc_info=True)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)
        for handler in self.logger.handlers:
            handler.setLevel(level)

    @property
    def handlers(self) -> list[logging.Handler]:
        return self.logger.handlers


def get_logger(
    name: str,
    log_format: str | None = None,
    json_file: str | Path | None = None,
    human_output: str | None = None,
) -> BridgeLogger:
    """Get a :class:`BridgeLogger`, defaulting output settings from the environment."""
    from enigma2_bridge.const import (
        ENIGMA2_LOG_FORMAT,
        ENIGMA2_LOG_HUMAN_OUTPUT,
        ENIGMA2_LOG_JSON_FILE,
    )

    return BridgeLogger(
        name=name,
        log_format=log_format or ENIGMA2_LOG_FORMAT,
        json_file=json_file or ENIGMA2_LOG_JSON_FILE,
        human_output=human_output or ENIGMA2_LOG_HUMAN_OUTPUT,
    )


def configure_logging(
    log_format: str,
    json_file: str | Path | None,
    human_output: str | None,
    level: int = logging.INFO,
) -> BridgeLogger:
    """Replace the package root logger's handlers with ones built from these settings.

    Child loggers propagate to the root, so loggers created at import time pick
    up the new outputs without being recreated.
    """
    root = logging.getLogger(__name__.split(".", 1)[0])
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    root_logger = BridgeLogger(root.name, log_format, json_file, human_output)
    root_logger.set_level(level)
    return root_logger
