'''
Start of the window a student's cancellation limit is counted over.
'''
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from ..database.db_enums import LimitPeriod
from .cancellation_fee import ensure_utc


def period_start(
    period: LimitPeriod,
    now: datetime,
    tz_name: str = "UTC",
    enrolled_at: Optional[datetime] = None,
) -> Optional[datetime]:
    """
    Returns the UTC instant the current period began.

    Calendar periods (month, quarter, year) start at local midnight in the
    organization's timezone. The `enrollment` period runs from the student's
    enrollment, and has no start (counts everything) when that is unknown.
    """
    if period == LimitPeriod.ENROLLMENT:
        return ensure_utc(enrolled_at) if enrolled_at is not None else None

    zone = ZoneInfo(tz_name)
    local_now = ensure_utc(now).astimezone(zone)

    if period == LimitPeriod.MONTH:
        start = local_now.replace(day=1)
    elif period == LimitPeriod.QUARTER:
        first_month = 3 * ((local_now.month - 1) // 3) + 1
        start = local_now.replace(month=first_month, day=1)
    elif period == LimitPeriod.YEAR:
        start = local_now.replace(month=1, day=1)
    else:
        raise ValueError(f"Unsupported limit period: {period}")

    start = start.replace(hour=0, minute=0, second=0, microsecond=0)
    return start.astimezone(timezone.utc)


def can_cancel(limit_enabled: bool, limit: Optional[int], used: int) -> bool:
    if not limit_enabled or limit is None:
        return True
    return used < limit
