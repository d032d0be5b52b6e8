"""US phone number formatting and validation."""

import re

INVALID_COUNTRY_CODE = "INVALID_COUNTRY_CODE"

_NON_DIGIT_OR_PLUS = re.compile(r"[^\d+]")
_NON_DIGIT = re.compile(r"\D")


def format_phone_number(value: str) -> str:
    """
    Format a phone number as XXX-XXX-XXXX.

    A leading +1 is stripped; any other leading +<country> yields
    INVALID_COUNTRY_CODE. Partial input is formatted progressively.

    Args:
        value: Raw phone number input

    Returns:
        Formatted number, INVALID_COUNTRY_CODE, or empty string
    """
    clean = _NON_DIGIT_OR_PLUS.sub("", value or "")

    if clean.startswith("+"):
        if clean.startswith("+1"):
            clean = clean[2:]
        else:
            return INVALID_COUNTRY_CODE

    digits = _NON_DIGIT.sub("", clean)
    if not digits:
        return ""
    if len(digits) <= 3:
        return digits
    if len(digits) <= 6:
        return f"{digits[:3]}-{digits[3:]}"
    return f"{digits[:3]}-{digits[3:6]}-{digits[6:10]}"


def is_valid_phone_number(phone: str) -> bool:
    """Check that a phone number has exactly 10 digits."""
    return len(_NON_DIGIT.sub("", phone or "")) == 10


def to_e164(phone: str) -> str:
    """
    Convert a US phone number to E.164 (+1XXXXXXXXXX).

    Args:
        phone: Phone number in any common format

    Returns:
        E.164 formatted number
    """
    phone = phone or ""
    if phone.startswith("+1"):
        return "+" + _NON_DIGIT.sub("", phone)
    digits = _NON_DIGIT.sub("", phone)
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    return f"+1{digits}"
