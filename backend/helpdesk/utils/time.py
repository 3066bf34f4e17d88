"""Time Utilities - UTC timestamps and formatting"""
from datetime import datetime, timezone
from typing import Optional
from dateutil import parser as date_parser


def utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (MongoDB returns naive UTC by default)"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 string to datetime

    Args:
        iso_string: ISO formatted datetime string

    Returns:
        Datetime object in UTC
    """
    return ensure_utc(date_parser.isoparse(iso_string))


def minutes_since(dt: datetime, now: Optional[datetime] = None) -> int:
    """
    Calculate whole minutes elapsed since the given datetime

    Returns:
        Positive if in past, negative if in future
    """
    now = ensure_utc(now) if now else utc_now()
    delta = now - ensure_utc(dt)
    return int(delta.total_seconds() // 60)


def is_past(dt: datetime, now: Optional[datetime] = None) -> bool:
    """Check if datetime is strictly before now"""
    now = ensure_utc(now) if now else utc_now()
    return now > ensure_utc(dt)


def format_duration(minutes: int) -> str:
    """
    Format duration in minutes to human readable string

    Args:
        minutes: Duration in minutes

    Returns:
        Human readable string (e.g., "2h 30m", "1d 4h")
    """
    if minutes < 0:
        return f"-{format_duration(-minutes)}"

    if minutes < 60:
        return f"{minutes}m"

    hours = minutes // 60
    remaining_minutes = minutes % 60

    if hours < 24:
        if remaining_minutes > 0:
            return f"{hours}h {remaining_minutes}m"
        return f"{hours}h"

    days = hours // 24
    remaining_hours = hours % 24

    if remaining_hours > 0:
        return f"{days}d {remaining_hours}h"
    return f"{days}d"
