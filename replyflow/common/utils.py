"""Small helpers for ids, timestamps and scoring arithmetic."""

import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional


def generate_id(prefix: Optional[str] = None) -> str:
    """Return a unique string id, optionally prefixed (e.g. ``bs-3f2a...``)."""
    value = uuid.uuid4().hex
    return f"{prefix}-{value}" if prefix else value


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_iso(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string (or pass through a datetime) as an aware datetime.

    Naive values are assumed to be UTC. Returns None for empty or invalid input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_iso(value: Any) -> Optional[str]:
    """Format a datetime as an ISO-8601 UTC string with a ``Z`` suffix."""
    parsed = parse_iso(value)
    if parsed is None:
        return None
    parsed = parsed.astimezone(timezone.utc)
    return parsed.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def add_minutes(value: datetime, minutes: float) -> datetime:
    return value + timedelta(minutes=minutes)
