"""Shared helpers: JSON logging, id generation and UTC time arithmetic"""
from .logger import get_logger, setup_logging, set_correlation_id
from .idgen import generate_id, generate_ticket_id, generate_correlation_id
from .time import utc_now, ensure_utc, minutes_since, is_past

__all__ = [
    "get_logger",
    "setup_logging",
    "set_correlation_id",
    "generate_id",
    "generate_ticket_id",
    "generate_correlation_id",
    "utc_now",
    "ensure_utc",
    "minutes_since",
    "is_past",
]
