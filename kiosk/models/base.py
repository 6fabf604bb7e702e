"""
Model helpers
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite stores DateTime without tzinfo"""
    return datetime.now(timezone.utc).replace(tzinfo=None)
