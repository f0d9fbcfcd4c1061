"""
DateTime helpers. All timestamps handled by the engine are timezone-aware UTC.
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """An expiry equal to ``now`` counts as passed."""
    if expires_at is None:
        return False
    return ensure_utc(expires_at) <= ensure_utc(now or utc_now())


def format_iso8601(dt: Optional[datetime]) -> Optional[str]:
    return ensure_utc(dt).isoformat() if dt is not None else None


def parse_iso8601(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(value))
