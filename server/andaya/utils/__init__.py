"""Pure helpers: billing, calendars, countdowns, formatting."""

from .billing import calculate_overage, late_fee_rate, quote_pricing
from .countdown import reservation_countdown
from .date_range import DateRangeSelector
from .phone import normalize_ve_phone, whatsapp_link
from .retry import with_retry

__all__ = [
    "quote_pricing",
    "late_fee_rate",
    "calculate_overage",
    "reservation_countdown",
    "DateRangeSelector",
    "normalize_ve_phone",
    "whatsapp_link",
    "with_retry",
]
