from __future__ import annotations

import json
import logging
import sys
from logging import LogRecord
from typing import Any, Dict

from loguru import logger
from opentelemetry import trace


_STDLIB_RECORD_FIELDS = frozenset(
    (
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    )
)


class InterceptHandler(logging.Handler):
    """Route stdlib logging (uvicorn, sqlalchemy, apscheduler) into Loguru."""

    def emit(self, record: LogRecord) -> None:  # pragma: no cover - bridging glue
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        try:
            message = record.getMessage()
        except Exception:  # pragma: no cover - malformed format strings
            message = record.msg if isinstance(record.msg, str) else str(record.msg)

        context = {key: value for key, value in record.__dict__.items() if key not in _STDLIB_RECORD_FIELDS}
        bound = logger.bind(**context) if context else logger
        bound.opt(depth=6, exception=record.exc_info).log(level, message.replace("{", "{{").replace("}", "}}"))


def _serialize_log(message: "logger.Message", metadata: Dict[str, Any]) -> None:
    record = message.record
    span_context = trace.get_current_span().get_span_context()

    payload: Dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name.lower(),
        "message": record["message"],
        "logger": record["name"],
        "service": metadata["service_name"],
        "environment": metadata["environment"],
        "version": metadata["version"],
    }
    if span_context.is_valid:
        payload["trace_id"] = f"{span_context.trace_id:032x}"
        payload["span_id"] = f"{span_context.span_id:016x}"
    if record["extra"]:
        payload.update(record["extra"])
    if record["exception"] is not None:
        payload["exception"] = repr(record["exception"].value)

    sys.stdout.write(json.dumps(payload, default=str) + "\n")


def configure_logging(*, service_name: str, environment: str, version: str) -> None:
    """Send Loguru and stdlib logging through one structured JSON sink."""

    logger.remove()
    metadata = {"service_name": service_name, "environment": environment, "version": version}
    logger.add(lambda message: _serialize_log(message, metadata), backtrace=False, diagnose=False)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
