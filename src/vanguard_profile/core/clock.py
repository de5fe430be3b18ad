from datetime import datetime, timezone
from typing import Optional, Union

Timestamp = Union[datetime, str, None]

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def ensure_utc(ts: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)

def parse_timestamp(value: Timestamp) -> Optional[datetime]:
    """ISO-8601 string or datetime -> aware UTC datetime; None when absent or unparsable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None
