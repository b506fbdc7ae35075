"""
Structured JSON logging with:
  - Console output
  - Optional rotating file output (configurable size / backup count)
  - Scope / request / conversation IDs injected into every record
"""

import json
import logging
import logging.handlers
import sys
import time
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Optional

from llm_core.config import Settings, get_settings

# ── Context variables so per-call metadata travels through async calls ────────
_scope_id_var: ContextVar[str] = ContextVar("scope_id", default="")
_request_id_var: ContextVar[str] = ContextVar("request_id", default="")
_conversation_id_var: ContextVar[str] = ContextVar("conversation_id", default="")

_RESERVED_ATTRS = {
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "taskName",
}


def set_logging_context(scope_id: str = "", request_id: str = "", conversation_id: str = "") -> None:
    _scope_id_var.set(scope_id)
    _request_id_var.set(request_id)
    _conversation_id_var.set(conversation_id)


def set_conversation_id(conversation_id: str) -> None:
    _conversation_id_var.set(conversation_id)


def new_request_id() -> str:
    rid = str(uuid.uuid4())[:8]
    _request_id_var.set(rid)
    return rid


# ── JSON formatter ─────────────────────────────────────────────────────────────
class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "scope_id": _scope_id_var.get() or record.__dict__.get("scope_id", ""),
            "request_id": _request_id_var.get() or record.__dict__.get("request_id", ""),
            "conversation_id": (
                _conversation_id_var.get() or record.__dict__.get("conversation_id", "")
            ),
            "msg": record.getMessage(),
        }
        # Carry any extra keys set via `logger.info("...", extra={...})`
        for key, val in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in payload and not key.startswith("_"):
                payload[key] = val

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # Remove default handlers
    root.handlers.clear()

    formatter = JsonFormatter()

    # Console
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    # Rotating file
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=settings.log_file,
            maxBytes=settings.log_rotation_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
