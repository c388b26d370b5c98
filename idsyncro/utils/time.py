"""
Time utility functions.
"""

from datetime import datetime, date, timezone
from typing import Optional


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def today_iso(now: Optional[datetime] = None) -> str:
    """Current UTC date as YYYY-MM-DD."""
    return (now or utc_now()).date().isoformat()


def year_suffix(now: Optional[datetime] = None) -> str:
    """Two-digit year used in employee and certificate codes."""
    return f"{(now or utc_now()).year % 100:02d}"


def parse_iso_date(value: str) -> date:
    """Parse a YYYY-MM-DD string (a full ISO timestamp is accepted too)."""
    return date.fromisoformat(value.strip()[:10])
