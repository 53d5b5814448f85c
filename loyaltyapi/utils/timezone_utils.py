"""
타임존 유틸리티

저장/비교는 모두 UTC 로 하고, "하루" 경계가 필요한 규칙(일일 투표 제한 등)만
settings.TIMEZONE 기준 현지 날짜로 계산한다.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import pytz

from loyaltyapi.config import settings


def now_utc() -> datetime:
    """현재 UTC 시간을 반환합니다."""
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """naive datetime 은 UTC 로 간주하여 tz-aware 로 맞춥니다 (SQLite 는 tzinfo 를 잃음)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def get_business_tz():
    return pytz.timezone(settings.TIMEZONE)


def local_day_bounds(at: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    주어진 시각이 속한 현지(settings.TIMEZONE) 하루의 [시작, 끝) 을 UTC 로 반환합니다.

    Args:
        at: 기준 시각 (기본값: 현재)

    Returns:
        (start_utc, end_utc)
    """
    tz = get_business_tz()
    local = as_utc(at or now_utc()).astimezone(tz)
    midnight = tz.localize(datetime(local.year, local.month, local.day))
    next_midnight = tz.normalize(midnight + timedelta(days=1))
    return midnight.astimezone(timezone.utc), next_midnight.astimezone(timezone.utc)
