"""Logging setup for the CLI.

Logs go to stderr so that JSON reports printed on stdout stay
machine-readable. Every record emitted while a command runs carries the
command name and its region.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from infra.config import get_settings

# Attributes every LogRecord has; anything else on a record came from `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


@dataclass(frozen=True)
class CommandLogContext:
    command: str
    region: str

    def fields(self) -> dict[str, str]:
        return {"command": self.command, "region": self.region}


_command_ctx: ContextVar[CommandLogContext | None] = ContextVar("command_log_context", default=None)


def set_request_context(*, command: str, region: str) -> None:
    """Tag subsequent log records with the running command and its region."""
    _command_ctx.set(CommandLogContext(command=command, region=region))


def clear_request_context() -> None:
    _command_ctx.set(None)


def _context_fields() -> dict[str, str]:
    ctx = _command_ctx.get()
    return ctx.fields() if ctx is not None else {}


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}


def _utc_iso8601() -> str:
    # Example: 2026-01-24T18:03:12.123Z
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    """One JSON object per record: core fields, command context, then `extra=` keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _utc_iso8601(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context_fields())
        for key, value in _record_extras(record).items():
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """`time | level | logger | [command region] message key=value ...`, UTC."""

    converter = time.gmtime

    def __init__(self) -> None:
        super().__init__("%(asctime)sZ | %(levelname)s | %(name)s | %(message)s")

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        fields = _context_fields()
        if fields:
            # The format string ends with the message.
            head = line[: len(line) - len(record.message)]
            line = f"{head}[{fields['command']} {fields['region']}] {record.message}"
        extras = {k: v for k, v in _record_extras(record).items() if k != "event"}
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in extras.items())
        return line


class StructuredLogger:
    """Event-style logger used by the commands and the CLI.

    ``logger.info("reservations_fetched", count=4)`` logs the message
    ``reservations_fetched`` with ``event`` and ``count`` attached to the record.
    """

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event: str, **fields: Any) -> None:
        self._logger.log(level, event, extra={"event": event, **fields})

    def info(self, event: str, **fields: Any) -> None:
        self._log(logging.INFO, event, **fields)

    def error(self, event: str, **fields: Any) -> None:
        self._log(logging.ERROR, event, **fields)


def setup_logging(
    *,
    level: str | None = None,
    json_logs: bool | None = None,
    override_root_handlers: bool | None = None,
) -> None:
    """
    Configure the root logger for one CLI run.

    Env vars:
      - RIRECON_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default WARNING)
      - RIRECON_LOG_JSON:  1/0 (default 0)
      - RIRECON_LOG_OVERRIDE: 1/0 (default 0)
         If 1, replaces any pre-configured root handlers.
         If 0, only configures logging if root has no handlers.
    """
    config = get_settings(reload=True).logging
    level_name = (level or config.level).upper()
    use_json = json_logs if json_logs is not None else bool(config.json_logs)
    override = override_root_handlers if override_root_handlers is not None else bool(config.override_root_handlers)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.WARNING))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if use_json else TextFormatter())

    if override:
        for h in list(root.handlers):
            root.removeHandler(h)
        root.addHandler(handler)
    elif not root.handlers:
        root.addHandler(handler)

    for noisy in ("boto3", "botocore", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
