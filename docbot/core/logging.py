from __future__ import annotations

import contextvars
import json
import logging
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger import jsonlogger

from docbot.core.config import settings

_run_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar("run_id", default=None)
_question_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar("question_id", default=None)


class JsonLineFormatter(jsonlogger.JsonFormatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = super().format(record)
        return json.dumps(json.loads(payload), separators=(",", ":"), ensure_ascii=False)


class _StructuredContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "run_id", None) is None:
            record.run_id = _run_id_ctx.get()
        if getattr(record, "question_id", None) is None:
            record.question_id = _question_id_ctx.get()
        if not hasattr(record, "event_type"):
            record.event_type = None
        if not hasattr(record, "plane"):
            record.plane = None
        if not hasattr(record, "service"):
            record.service = settings.APP_NAME
        if not hasattr(record, "env"):
            record.env = settings.APP_ENV
        if not hasattr(record, "version"):
            record.version = settings.APP_VERSION
        if not hasattr(record, "ts"):
            record.ts = datetime.now(timezone.utc).isoformat()
        return True


def set_run_context(run_id: str | None) -> None:
    _run_id_ctx.set(run_id)


def set_question_context(question_id: str | None) -> None:
    _question_id_ctx.set(question_id)


def clear_context() -> None:
    _run_id_ctx.set(None)
    _question_id_ctx.set(None)


def get_run_id() -> str | None:
    return _run_id_ctx.get()


def get_question_id() -> str | None:
    return _question_id_ctx.get()


def log_event(
    event_type: str,
    *,
    level: int = logging.INFO,
    payload: dict[str, Any] | None = None,
    plane: str = "data",
) -> None:
    logger = logging.getLogger("docbot.observability")
    extra = {
        "event_type": event_type,
        "plane": plane,
        "run_id": get_run_id(),
        "question_id": get_question_id(),
        "ts": datetime.now(timezone.utc).isoformat(),
        "service": settings.APP_NAME,
        "env": settings.APP_ENV,
        "version": settings.APP_VERSION,
    }
    if payload:
        extra.update(payload)
    logger.log(level, event_type, extra=extra)


def configure_logging(level: str | None = None) -> None:
    handler = logging.StreamHandler()
    handler.addFilter(_StructuredContextFilter())
    formatter = JsonLineFormatter(
        "%(ts)s %(levelname)s %(service)s %(env)s %(event_type)s %(run_id)s %(question_id)s %(plane)s %(version)s %(message)s"
    )
    handler.setFormatter(formatter)
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())
    root.handlers = [handler]
