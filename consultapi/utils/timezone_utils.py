"""
타임존 유틸리티

사용량 카운터의 날짜 경계는 UTC 기준이다.
"""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """현재 UTC 시간을 반환합니다."""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """현재 UTC 날짜를 반환합니다."""
    return utc_now().date()

