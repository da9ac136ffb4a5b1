"""
타임존 유틸리티

모든 시각은 UTC 기준으로 저장/비교합니다.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """현재 UTC 시간을 반환합니다."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """naive datetime은 UTC로 간주하여 타임존 정보를 붙입니다.

    SQLite 등 타임존을 보존하지 않는 드라이버에서 읽은 값과
    애플리케이션에서 생성한 aware 값을 안전하게 비교하기 위함입니다.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """API 응답용 문자열 (YYYY-MM-DD HH:MM:SS, UTC)"""
    if dt is None:
        return None
    return ensure_utc(dt).strftime("%Y-%m-%d %H:%M:%S")
