'''
testing core/cancellation_fee.py
'''
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from tutor_school_backend.core.cancellation_fee import calculate_cancellation_fee, ensure_utc
from tutor_school_backend.models.cancellation import CancellationPolicy

NOW = datetime(2025, 1, 15, 8, 0, tzinfo=timezone.utc)
POLICY = CancellationPolicy(fee_enabled=True, fee_percent=Decimal("50"), hours_threshold=24)


def quote_at(hours_out: float, price=Decimal("100"), policy=POLICY):
    return calculate_cancellation_fee(NOW + timedelta(hours=hours_out), price, "PLN", policy, NOW)


def test_fee_applies_inside_threshold():
    quote = quote_at(10)
    assert quote.fee_applies is True
    assert quote.fee_amount == Decimal("50.00")
    assert quote.hours_until_lesson == 10
    assert quote.currency == "PLN"

def test_no_fee_outside_threshold():
    quote = quote_at(30)
    assert quote.fee_applies is False
    assert quote.fee_amount is None

def test_exactly_on_threshold_is_free():
    assert quote_at(24).fee_applies is False

def test_past_lesson_counts_as_late():
    assert quote_at(-2).fee_applies is True

def test_rounds_half_up_to_cents():
    policy = CancellationPolicy(fee_enabled=True, fee_percent=Decimal("33.33"), hours_threshold=24)
    quote = quote_at(1, price=Decimal("10.05"), policy=policy)
    # 10.05 * 33.33 / 100 = 3.349665
    assert quote.fee_amount == Decimal("3.35")

def test_disabled_policy_never_charges():
    policy = CancellationPolicy(fee_enabled=False, fee_percent=Decimal("50"), hours_threshold=24)
    quote = quote_at(1, policy=policy)
    assert quote.fee_applies is False
    assert quote.fee_percent is None

def test_unpriced_lesson_never_charges():
    assert quote_at(1, price=None).fee_applies is False

def test_naive_datetimes_are_treated_as_utc():
    naive = datetime(2025, 1, 15, 18, 0)
    assert ensure_utc(naive) == datetime(2025, 1, 15, 18, 0, tzinfo=timezone.utc)
    quote = calculate_cancellation_fee(naive, Decimal("100"), "PLN", POLICY, NOW)
    assert quote.hours_until_lesson == 10
