'''
Late-cancellation fee maths.
'''
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from ..models.cancellation import CancellationPolicy, CancellationFeeQuote

CENTS = Decimal("0.01")


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes coming back from the database are UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def hours_until(scheduled_at: datetime, now: datetime) -> float:
    return (ensure_utc(scheduled_at) - ensure_utc(now)).total_seconds() / 3600


def calculate_cancellation_fee(
    scheduled_at: datetime,
    price: Optional[Decimal],
    currency: str,
    policy: CancellationPolicy,
    now: datetime,
) -> CancellationFeeQuote:
    """
    Works out whether cancelling at `now` costs anything and how much.

    A fee applies only when the policy has fees enabled, the lesson has a price,
    and the lesson starts in less than `hours_threshold` hours (lessons already
    in the past count as late). The amount is price * percent / 100 rounded
    half-up to cents.
    """
    hours_left = hours_until(scheduled_at, now)

    fee_applies = (
        policy.fee_enabled
        and price is not None
        and policy.fee_percent is not None
        and policy.hours_threshold is not None
        and hours_left < policy.hours_threshold
    )

    fee_amount = None
    if fee_applies:
        fee_amount = (Decimal(price) * Decimal(policy.fee_percent) / Decimal(100)).quantize(CENTS, rounding=ROUND_HALF_UP)

    return CancellationFeeQuote(
        fee_applies=fee_applies,
        fee_amount=fee_amount,
        fee_percent=policy.fee_percent if policy.fee_enabled else None,
        hours_threshold=policy.hours_threshold if policy.fee_enabled else None,
        hours_until_lesson=round(hours_left, 2),
        lesson_price=price,
        currency=currency,
    )
