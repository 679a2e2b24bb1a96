"""Currency formatting and conversion helpers."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

Number = Union[int, float, Decimal]

CENT = Decimal("0.01")
SUPPORTED_CODES = ("USD", "EUR", "VES")


def to_decimal(value: Optional[Number]) -> Decimal:
    """Coerce a number (or None) to Decimal without float artifacts."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Number) -> Decimal:
    """Round to cents, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _group(value: Optional[Number], thousands: str, decimal_sep: str) -> str:
    amount = round_money(value)
    sign = "-" if amount < 0 else ""
    text = f"{abs(amount):,.2f}"
    integer, fraction = text.split(".")
    return f"{sign}{integer.replace(',', thousands)}{decimal_sep}{fraction}"


def format_number_es(value: Optional[Number]) -> str:
    """Format as es-VE with two decimals: 1.234,56"""
    return _group(value, ".", ",")


def format_bs(value: Optional[Number]) -> str:
    """Format bolivares: ``Bs 1.234,56``."""
    return f"Bs {format_number_es(value)}"


def format_usd(value: Optional[Number]) -> str:
    """Format dollars: ``$1,234.56``."""
    text = _group(value, ",", ".")
    if text.startswith("-"):
        return f"-${text[1:]}"
    return f"${text}"


def format_eur(value: Optional[Number]) -> str:
    """Format euros the de-DE way: ``1.234,56 €``."""
    return f"{_group(value, '.', ',')} €"


def format_currency(value: Optional[Number], code: str) -> str:
    if code == "USD":
        return format_usd(value)
    if code == "EUR":
        return format_eur(value)
    return format_bs(value)


def convert_to(target: str, amount: Number, rate_value: Number, source_code: str = "VES") -> Decimal:
    """
    Convert between bolivares and a foreign currency using a VES-per-unit rate.

    Converting to VES multiplies by the rate; converting from VES to USD/EUR
    divides by it. Same source and target returns the amount unchanged.
    """
    amount = to_decimal(amount)
    if target == source_code:
        return amount

    rate = to_decimal(rate_value)
    if target == "VES":
        return amount * rate

    if rate == 0:
        raise ValueError("Exchange rate must be non-zero")
    return amount / rate
