"""
Reservation pricing and late-return billing.

All money math uses Decimal and rounds to cents (half up). Durations are
billed in whole units: hours under a day, days otherwise; overage past the
grace period in half hours.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from andaya.config import settings
from andaya.utils.currency import Number, round_money, to_decimal
from andaya.utils.dates import as_utc

HOUR = timedelta(hours=1)
DAY = timedelta(days=1)
HALF_HOUR_US = 30 * 60 * 1_000_000


def _ceil_div(delta: timedelta, unit: timedelta) -> int:
    """Whole units needed to cover delta (exact, no float rounding)."""
    numerator = delta // timedelta(microseconds=1)
    denominator = unit // timedelta(microseconds=1)
    return -(-numerator // denominator)


def default_hourly_rate(daily_price: Number) -> Decimal:
    """Hourly rate used when a vehicle has none: the daily price spread over 24 h."""
    return round_money(to_decimal(daily_price) / 24)


@dataclass
class PricingQuote:
    """Price of renting a vehicle for a time window."""

    pricing_mode: str  # "hourly" or "daily"
    daily_rate_bs: Decimal
    hourly_rate_bs: Decimal
    hours: int
    days: int
    subtotal_bs: Decimal
    service_fee_bs: Decimal
    total_bs: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pricing_mode": self.pricing_mode,
            "daily_rate_bs": float(self.daily_rate_bs),
            "hourly_rate_bs": float(self.hourly_rate_bs),
            "breakdown": {"hours": self.hours, "days": self.days},
            "subtotal_bs": float(self.subtotal_bs),
            "service_fee_bs": float(self.service_fee_bs),
            "total_bs": float(self.total_bs),
        }


def quote_pricing(
    daily_price: Number,
    start_at: datetime,
    end_at: datetime,
    hourly_rate: Optional[Number] = None,
    service_fee_rate: Optional[Number] = None,
) -> PricingQuote:
    """
    Price a rental window.

    Windows shorter than 24 hours are billed per started hour at the hourly
    rate; longer windows per started day at the daily price. A service fee
    (10% by default) is added on top of the subtotal.

    Raises:
        ValueError: If end_at is not after start_at
    """
    start_at, end_at = as_utc(start_at), as_utc(end_at)
    if end_at <= start_at:
        raise ValueError("end_at must be after start_at")

    daily = round_money(daily_price)
    hourly = round_money(hourly_rate) if hourly_rate else default_hourly_rate(daily)
    fee_rate = to_decimal(
        settings.SERVICE_FEE_RATE if service_fee_rate is None else service_fee_rate
    )

    duration = end_at - start_at
    hours = _ceil_div(duration, HOUR)
    days = _ceil_div(duration, DAY)

    if duration < DAY:
        mode = "hourly"
        subtotal = round_money(hourly * hours)
    else:
        mode = "daily"
        subtotal = round_money(daily * days)

    service_fee = round_money(subtotal * fee_rate)

    return PricingQuote(
        pricing_mode=mode,
        daily_rate_bs=daily,
        hourly_rate_bs=hourly,
        hours=hours,
        days=days,
        subtotal_bs=subtotal,
        service_fee_bs=service_fee,
        total_bs=subtotal + service_fee,
    )


def late_fee_rate(
    late_fee_per_hour: Optional[Number],
    hourly_rate: Optional[Number],
    daily_price: Optional[Number] = None,
) -> Decimal:
    """
    Late fee charged per overage hour.

    An explicit per-hour late fee wins; otherwise the hourly rate (derived
    from the daily price when missing) times the late-fee multiplier.
    """
    if late_fee_per_hour:
        return round_money(late_fee_per_hour)

    if hourly_rate:
        base = to_decimal(hourly_rate)
    elif daily_price:
        base = default_hourly_rate(daily_price)
    else:
        return Decimal("0.00")

    return round_money(base * to_decimal(settings.LATE_FEE_MULTIPLIER))


@dataclass
class OverageResult:
    grace_end_at: datetime
    overage_hours: Decimal
    late_fees_bs: Decimal


def calculate_overage(
    actual_return_at: datetime,
    planned_end_at: datetime,
    grace_minutes: Optional[int],
    rate_per_hour: Number,
) -> OverageResult:
    """
    Compute late-return overage.

    Time past ``planned_end_at + grace_minutes`` is rounded up to the next half
    hour and billed at ``rate_per_hour``. Returns at or before the grace end
    cost nothing.
    """
    if grace_minutes is None:
        grace_minutes = settings.DEFAULT_GRACE_MINUTES

    grace_end_at = as_utc(planned_end_at) + timedelta(minutes=grace_minutes)
    actual_return_at = as_utc(actual_return_at)

    if actual_return_at <= grace_end_at:
        return OverageResult(grace_end_at, Decimal("0"), Decimal("0.00"))

    overage_us = (actual_return_at - grace_end_at) // timedelta(microseconds=1)
    half_hours = -(-overage_us // HALF_HOUR_US)
    overage_hours = Decimal(half_hours) / 2

    late_fees = round_money(to_decimal(rate_per_hour) * overage_hours)
    return OverageResult(grace_end_at, overage_hours, late_fees)
