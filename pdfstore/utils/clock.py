from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp, the form every table column stores."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands timestamps back without tzinfo; they were written as UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def timestamp_type():
    return DateTime(timezone=True)
