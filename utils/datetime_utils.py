"""Helpers for the ISO-8601 timestamps stored on documents"""
from datetime import datetime, timezone
from typing import Optional, Union


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse a stored timestamp, assuming UTC when no offset is present"""
    if value is None:
        return None
    if isinstance(value, str):
        # fromisoformat rejects a trailing Z before 3.11
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def to_iso(value: datetime) -> str:
    return parse_datetime(value).isoformat()
