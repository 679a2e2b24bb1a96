"""Date/time parsing and Spanish formatting helpers."""

from datetime import date, datetime, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from andaya.config import settings

SPANISH_MONTHS = (
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
)


def local_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Return an aware UTC datetime.

    Naive values are assumed to already be UTC (SQLite drops tzinfo on
    round-trip).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso_datetime(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO-8601 timestamp (``Z`` suffix accepted) into aware UTC.

    Raises:
        ValueError: If the string is not a valid timestamp
    """
    if isinstance(value, datetime):
        return as_utc(value)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


def format_date_es(value: date, with_year: bool = True) -> str:
    """``15 de marzo de 2025`` (or ``15 de marzo``)."""
    text = f"{value.day} de {SPANISH_MONTHS[value.month - 1]}"
    if with_year:
        text += f" de {value.year}"
    return text


def format_datetime_es(value: datetime) -> str:
    """
    Format a timestamp in Caracas local time, e.g. ``05 de marzo de 2025, 02:30 p. m.``
    """
    local = as_utc(value).astimezone(local_tz())
    hour = local.hour % 12 or 12
    suffix = "a. m." if local.hour < 12 else "p. m."
    month = SPANISH_MONTHS[local.month - 1]
    return f"{local.day:02d} de {month} de {local.year}, {hour:02d}:{local.minute:02d} {suffix}"
