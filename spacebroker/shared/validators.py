"""Shared validation utilities"""

import html
import re
from datetime import datetime, timezone
from typing import Optional

TIME_SLOT_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def validate_time_slot(value: Optional[str]) -> str:
    """
    Validate a 24h ``HH:MM`` time slot.

    Raises:
        ValueError: If the value is not a valid HH:MM time
    """
    if not value or not TIME_SLOT_PATTERN.match(value):
        raise ValueError("Time must use 24h HH:MM format")
    return value


def time_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def sanitize_text(value: Optional[str], max_length: int = 2000) -> Optional[str]:
    """
    Escape HTML special characters and trim free-text input.
    Returns None for empty input.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    return html.escape(value[:max_length], quote=True)
