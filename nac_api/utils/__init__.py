"""
Utility functions
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (DATETIME columns are timezone-naive)."""
    return datetime.now(UTC).replace(tzinfo=None)


__all__ = ["utcnow"]
