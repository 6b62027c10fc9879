# utils/audit.py
"""JSONL audit trail in logs/audit.log.

One JSON object per line: `ts`, `event`, whichever of guild/channel/user,
command, result and reason apply, plus free-form fields. Rotation uses the
same RotatingFileHandler + JsonFormatter pairing as the main bot logs.
"""
from __future__ import annotations

import logging
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from pythonjsonlogger.json import JsonFormatter

logger = logging.getLogger("bot.audit")

AUDIT_MAX_BYTES = 2_000_000
AUDIT_BACKUPS = 5

_HANDLERS: dict[Path, RotatingFileHandler] = {}
_HANDLERS_LOCK = threading.Lock()

# Attributes every LogRecord already has; free-form fields must not shadow them.
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def _default_log_dir() -> Path:
    # project_root/logs
    return Path(__file__).resolve().parent.parent / "logs"


def _trail_handler(log_dir: Path) -> RotatingFileHandler:
    path = (log_dir / "audit.log").resolve()
    with _HANDLERS_LOCK:
        handler = _HANDLERS.get(path)
        if handler is None:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                path, maxBytes=AUDIT_MAX_BYTES, backupCount=AUDIT_BACKUPS, encoding="utf-8"
            )
            handler.setFormatter(
                JsonFormatter(
                    "%(message)s",
                    rename_fields={"message": "event"},
                    timestamp="ts",
                    json_default=str,
                    json_ensure_ascii=False,
                )
            )
            _HANDLERS[path] = handler
        return handler


def audit_log(
    event: str,
    *,
    guild_id: Optional[int] = None,
    channel_id: Optional[int] = None,
    user_id: Optional[int] = None,
    username: Optional[str] = None,
    command: Optional[str] = None,
    result: Optional[str] = None,
    reason: Optional[str] = None,
    fields: Optional[dict[str, Any]] = None,
    log_dir: Optional[Path] = None,
) -> None:
    """Append one audit event.

    Never raises: a broken audit trail must not break sticker delivery.
    """
    try:
        attrs: dict[str, Any] = {}
        for key, value, cast in (
            ("guild_id", guild_id, int),
            ("channel_id", channel_id, int),
            ("user_id", user_id, int),
            ("username", username, str),
            ("command", command, str),
            ("result", result, str),
            ("reason", reason, str),
        ):
            if value is not None:
                attrs[key] = cast(value)

        for k, v in (fields or {}).items():
            k = str(k)
            attrs[f"field_{k}" if k in _RECORD_ATTRS else k] = v

        record = logging.makeLogRecord(
            {"name": "audit", "levelno": logging.INFO, "levelname": "INFO", "msg": str(event), **attrs}
        )
        _trail_handler(log_dir or _default_log_dir()).handle(record)
    except Exception:
        logger.exception("Failed to write audit log event=%s", event)
