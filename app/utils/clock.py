from typing import Optional
from datetime import datetime, timezone


def utc_now() -> datetime:
    """timezone-aware 현재 UTC 시각"""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """naive datetime은 UTC로 간주하여 timezone을 붙입니다."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
