"""Venezuelan phone number helpers."""

import re
from typing import Optional
from urllib.parse import quote

VE_COUNTRY_CODE = "58"


def normalize_ve_phone(value: Optional[str]) -> Optional[str]:
    """
    Normalize a Venezuelan mobile number to E.164 (+58XXXXXXXXXX).

    Accepts local and international spellings such as ``4241234567``,
    ``0424-123-4567`` or ``+58 424 1234567``.

    Returns:
        The normalized number, or None when the input is not a valid
        Venezuelan mobile number (10 national digits starting with 4).
    """
    if not value:
        return None

    cleaned = re.sub(r"[^\d+]", "", value)

    if cleaned.startswith("+58"):
        cleaned = cleaned[3:]
    elif cleaned.startswith("58"):
        cleaned = cleaned[2:]

    # Local trunk prefix (0424...)
    if cleaned.startswith("0"):
        cleaned = cleaned[1:]

    if len(cleaned) != 10 or not cleaned.isdigit():
        return None

    if not cleaned.startswith("4"):
        return None

    return f"+{VE_COUNTRY_CODE}{cleaned}"


def whatsapp_link(phone: Optional[str], message: Optional[str] = None) -> Optional[str]:
    """
    Build a wa.me link for a Venezuelan mobile number.

    wa.me expects the international number without the leading plus sign.
    """
    normalized = normalize_ve_phone(phone)
    if not normalized:
        return None

    url = f"https://wa.me/{normalized.lstrip('+')}"
    if message:
        return f"{url}?text={quote(message)}"
    return url
