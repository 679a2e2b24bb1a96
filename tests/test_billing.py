"""Unit tests for reservation pricing and late-return billing."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from andaya.utils.billing import calculate_overage, late_fee_rate, quote_pricing

START = datetime(2025, 3, 10, 14, 0, tzinfo=timezone.utc)


class TestQuotePricing:
    """Hourly vs daily pricing with service fee."""

    def test_multi_day_rental_is_billed_per_day(self):
        quote = quote_pricing(Decimal("100"), START, START + timedelta(days=3))

        assert quote.pricing_mode == "daily"
        assert quote.days == 3
        assert quote.subtotal_bs == Decimal("300.00")
        assert quote.service_fee_bs == Decimal("30.00")
        assert quote.total_bs == Decimal("330.00")

    def test_started_day_counts_as_full_day(self):
        quote = quote_pricing(Decimal("100"), START, START + timedelta(hours=25))

        assert quote.pricing_mode == "daily"
        assert quote.days == 2
        assert quote.total_bs == Decimal("220.00")

    def test_short_rental_uses_derived_hourly_rate(self):
        """Without an hourly rate the daily price is spread over 24 hours."""
        quote = quote_pricing(Decimal("100"), START, START + timedelta(hours=5))

        assert quote.pricing_mode == "hourly"
        assert quote.hourly_rate_bs == Decimal("4.17")
        assert quote.hours == 5
        assert quote.subtotal_bs == Decimal("20.85")
        assert quote.service_fee_bs == Decimal("2.09")
        assert quote.total_bs == Decimal("22.94")

    def test_partial_hours_round_up(self):
        quote = quote_pricing(
            Decimal("100"), START, START + timedelta(hours=3, minutes=30), hourly_rate=Decimal("10")
        )

        assert quote.hours == 4
        assert quote.subtotal_bs == Decimal("40.00")
        assert quote.total_bs == Decimal("44.00")

    def test_exactly_one_day_is_daily(self):
        quote = quote_pricing(Decimal("80"), START, START + timedelta(days=1))

        assert quote.pricing_mode == "daily"
        assert quote.days == 1
        assert quote.subtotal_bs == Decimal("80.00")

    def test_custom_service_fee_rate(self):
        quote = quote_pricing(
            Decimal("100"), START, START + timedelta(days=2), service_fee_rate=Decimal("0")
        )

        assert quote.service_fee_bs == Decimal("0.00")
        assert quote.total_bs == Decimal("200.00")

    def test_to_dict_includes_breakdown(self):
        data = quote_pricing(Decimal("100"), START, START + timedelta(days=2)).to_dict()

        assert data["pricing_mode"] == "daily"
        assert data["breakdown"] == {"hours": 48, "days": 2}
        assert data["total_bs"] == 220.0

    def test_rejects_empty_window(self):
        with pytest.raises(ValueError):
            quote_pricing(Decimal("100"), START, START)


class TestLateFeeRate:
    def test_explicit_late_fee_wins(self):
        assert late_fee_rate(Decimal("15"), Decimal("10")) == Decimal("15.00")

    def test_hourly_rate_times_multiplier(self):
        assert late_fee_rate(None, Decimal("10")) == Decimal("12.00")

    def test_falls_back_to_daily_price(self):
        # 100 / 24 = 4.17, * 1.2 = 5.004
        assert late_fee_rate(None, None, Decimal("100")) == Decimal("5.00")

    def test_no_rates_means_no_fee(self):
        assert late_fee_rate(None, None) == Decimal("0.00")


class TestCalculateOverage:
    """Overage past the grace period, rounded up to half hours."""

    END = datetime(2025, 3, 13, 12, 0, tzinfo=timezone.utc)

    def test_return_within_grace_is_free(self):
        result = calculate_overage(self.END + timedelta(minutes=20), self.END, 30, Decimal("12"))

        assert result.overage_hours == Decimal("0")
        assert result.late_fees_bs == Decimal("0.00")
        assert result.grace_end_at == self.END + timedelta(minutes=30)

    def test_return_exactly_at_grace_end_is_free(self):
        result = calculate_overage(self.END + timedelta(minutes=30), self.END, 30, Decimal("12"))

        assert result.late_fees_bs == Decimal("0.00")

    def test_overage_rounds_up_to_half_hour(self):
        # 40 minutes past grace end -> 1.0 h
        result = calculate_overage(
            self.END + timedelta(hours=1, minutes=10), self.END, 30, Decimal("12")
        )

        assert result.overage_hours == Decimal("1")
        assert result.late_fees_bs == Decimal("12.00")

    def test_one_minute_past_two_hours_bills_two_and_a_half(self):
        result = calculate_overage(
            self.END + timedelta(hours=2, minutes=31), self.END, 30, Decimal("12")
        )

        assert result.overage_hours == Decimal("2.5")
        assert result.late_fees_bs == Decimal("30.00")

    def test_default_grace_period(self):
        result = calculate_overage(self.END + timedelta(minutes=29), self.END, None, Decimal("12"))

        assert result.late_fees_bs == Decimal("0.00")

    def test_naive_timestamps_are_treated_as_utc(self):
        result = calculate_overage(
            datetime(2025, 3, 13, 13, 0), self.END.replace(tzinfo=None), 30, Decimal("10")
        )

        assert result.overage_hours == Decimal("0.5")
        assert result.late_fees_bs == Decimal("5.00")
