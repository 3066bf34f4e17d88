"""ID Generation Utilities"""
import random
import uuid
from datetime import datetime, timezone
from typing import Optional


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix

    Args:
        prefix: Optional prefix for the ID (e.g., 'TKT', 'APR')

    Returns:
        Unique ID string

    Examples:
        >>> generate_id('TKT')
        'TKT-a1b2c3d4e5f6'
        >>> generate_id()
        'a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]

    if prefix:
        return f"{prefix}-{unique_part}"
    return unique_part


def generate_ticket_id() -> str:
    """Generate ticket ID"""
    return generate_id("TKT")


def generate_approval_id() -> str:
    """Generate ticket approval ID"""
    return generate_id("APR")


def generate_history_id() -> str:
    """Generate ticket history entry ID"""
    return generate_id("HIS")


def generate_rule_id() -> str:
    """Generate escalation/automation rule ID"""
    return generate_id("RULE")


def generate_notification_id() -> str:
    """Generate notification ID"""
    return generate_id("NTF")


def generate_email_id() -> str:
    """Generate email outbox ID"""
    return generate_id("EML")


def generate_ticket_number_candidate(prefix: str = "KT") -> str:
    """
    Generate a human facing ticket number candidate, e.g. 'KT-48213'.

    Uniqueness is checked by the caller against the ticket collection.
    """
    return f"{prefix}-{random.randint(10000, 99999)}"


def generate_correlation_id() -> str:
    """
    Generate a correlation ID for request tracing

    Returns:
        Correlation ID string with timestamp prefix
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    unique_part = uuid.uuid4().hex[:8]
    return f"COR-{timestamp}-{unique_part}"
