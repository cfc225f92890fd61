'''
testing core/cancellation_periods.py
'''
from datetime import datetime, timezone

from tutor_school_backend.core.cancellation_periods import period_start, can_cancel
from tutor_school_backend.database.db_enums import LimitPeriod

NOW = datetime(2025, 8, 20, 12, 30, tzinfo=timezone.utc)


def test_month_quarter_year_in_utc():
    assert period_start(LimitPeriod.MONTH, NOW) == datetime(2025, 8, 1, tzinfo=timezone.utc)
    assert period_start(LimitPeriod.QUARTER, NOW) == datetime(2025, 7, 1, tzinfo=timezone.utc)
    assert period_start(LimitPeriod.YEAR, NOW) == datetime(2025, 1, 1, tzinfo=timezone.utc)

def test_month_starts_at_local_midnight():
    # Warsaw is UTC+2 in August: local midnight on the 1st is 22:00 UTC the day before.
    assert period_start(LimitPeriod.MONTH, NOW, "Europe/Warsaw") == datetime(2025, 7, 31, 22, 0, tzinfo=timezone.utc)

def test_local_date_decides_the_month():
    # 23:30 UTC on 31 Aug is already September in Warsaw.
    late = datetime(2025, 8, 31, 23, 30, tzinfo=timezone.utc)
    assert period_start(LimitPeriod.MONTH, late, "Europe/Warsaw") == datetime(2025, 8, 31, 22, 0, tzinfo=timezone.utc)

def test_enrollment_period():
    enrolled = datetime(2024, 9, 1, 9, 0, tzinfo=timezone.utc)
    assert period_start(LimitPeriod.ENROLLMENT, NOW, enrolled_at=enrolled) == enrolled
    assert period_start(LimitPeriod.ENROLLMENT, NOW) is None

def test_can_cancel():
    assert can_cancel(False, 2, 10)
    assert can_cancel(True, None, 10)
    assert can_cancel(True, 2, 1)
    assert not can_cancel(True, 2, 2)
