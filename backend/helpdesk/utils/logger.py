"""Structured JSON Logging with Correlation ID Support

Three sinks share one formatter: stdout, ``helpdesk.log`` and ``error.log``.
Escalation runs (service, scheduler and CLI) also go to ``escalation.log``
so every automatic ticket change can be traced without the request noise.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from contextvars import ContextVar

from ..config.settings import settings


correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Record attributes passed through ``extra=`` that end up in the JSON line
EXTRA_FIELDS = (
    "ticket_id",
    "approval_id",
    "approval_level",
    "approver_id",
    "rule_id",
    "rule_name",
    "user_id",
    "trigger_event",
    "action",
    "status",
    "error_code",
    "duration_ms",
)

ESCALATION_LOGGERS = (
    "helpdesk.services.escalation_service",
    "helpdesk.scheduler.escalation_scheduler",
    "scripts.check_escalations",
)

QUIET_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "apscheduler": logging.WARNING,
    "pymongo": logging.WARNING,
}


class JsonFormatter(logging.Formatter):
    """One JSON object per line"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = getattr(record, "correlation_id", None) or correlation_id_var.get()
        if correlation_id:
            payload["correlation_id"] = correlation_id

        payload.update({
            field: getattr(record, field)
            for field in EXTRA_FIELDS
            if getattr(record, field, None) is not None
        })

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def _rotating_handler(filename: str, formatter: logging.Formatter, level: int = logging.NOTSET) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        os.path.join(settings.logs_path, filename),
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> None:
    """Configure the root logger; safe to call more than once"""
    os.makedirs(settings.logs_path, exist_ok=True)
    formatter = JsonFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(_rotating_handler("helpdesk.log", formatter))
    root_logger.addHandler(_rotating_handler("error.log", formatter, logging.ERROR))

    escalation_handler = _rotating_handler("escalation.log", formatter)
    for name in ESCALATION_LOGGERS:
        escalation_logger = logging.getLogger(name)
        for handler in [h for h in escalation_logger.handlers if isinstance(h, RotatingFileHandler)]:
            escalation_logger.removeHandler(handler)
            handler.close()
        escalation_logger.addHandler(escalation_handler)

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()
