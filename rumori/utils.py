"""
Small helpers shared by services.
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(dt: Optional[datetime] = None) -> str:
    """ISO-8601 timestamp as the backend stores it."""
    return (dt or utc_now()).astimezone(timezone.utc).isoformat()


def ensure_aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def format_time_ago(then: datetime, now: Optional[datetime] = None) -> str:
    """Relative time for display: "3d ago", "2h ago", "5m ago" or "Just now"."""
    now = ensure_aware(now or utc_now())
    seconds = max(0, int((now - ensure_aware(then)).total_seconds()))
    days, remainder = divmod(seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60
    if days > 0:
        return f"{days}d ago"
    if hours > 0:
        return f"{hours}h ago"
    if minutes > 0:
        return f"{minutes}m ago"
    return "Just now"
