"""Date manipulation utilities"""

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Timezone-aware current time in UTC"""
    return datetime.now(timezone.utc)


def add_days(from_time: datetime, days: int) -> datetime:
    """Due date for a loan term of `days` calendar days"""
    return from_time + timedelta(days=days)
