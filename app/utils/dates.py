from datetime import datetime, timezone
from typing import Optional

SECONDS_PER_DAY = 86400


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (SQLite drops tzinfo) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def whole_days_between(later: datetime, earlier: datetime) -> int:
    """Number of complete days from `earlier` to `later`, floored."""
    delta = as_utc(later) - as_utc(earlier)
    return int(delta.total_seconds() // SECONDS_PER_DAY)
