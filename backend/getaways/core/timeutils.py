"""
Timezone helpers. Every timestamp the service writes is UTC-aware.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (SQLite round-trips drop the offset) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string (a trailing 'Z' is accepted). Empty -> None; invalid -> ValueError."""
    if not value:
        return None
    return as_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
