"""Shared helpers used across ReplyFlow services.

Main components:
- BaseDB / DatabaseError: psycopg2 connection handling and error wrapping
- retry_with_backoff: retry decorator for flaky HTTP calls
- extract_experience_level: keyword-based seniority detection
- utils: ids, timestamps and rounding helpers
"""

from .db import BaseDB, DatabaseError
from .retry import retry_with_backoff
from .seniority_extractor import LEVEL_ORDER, VALID_EXPERIENCE_LEVELS, extract_experience_level
from .utils import add_minutes, clamp, generate_id, parse_iso, round_half_up, to_iso, utc_now

__all__ = [
    "BaseDB",
    "DatabaseError",
    "retry_with_backoff",
    "LEVEL_ORDER",
    "VALID_EXPERIENCE_LEVELS",
    "extract_experience_level",
    "add_minutes",
    "clamp",
    "generate_id",
    "parse_iso",
    "round_half_up",
    "to_iso",
    "utc_now",
]
__version__ = "0.1.0"
