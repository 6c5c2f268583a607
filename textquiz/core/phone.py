"""Phone number normalization to E.164."""

import re

from textquiz.core.errors import InvalidPhoneNumber

_NON_DIGITS = re.compile(r"\D")

# Area codes that never route to a real subscriber
RESERVED_AREA_CODES = {"555", "911", "999", "000"}


def normalize_phone_number(raw: str) -> str:
    """
    Normalize a phone number to E.164.

    North American numbers are accepted with or without the leading 1 or
    a 001 prefix; any other number must already carry a "+" country code.

    Raises:
        InvalidPhoneNumber: If the number cannot be normalized
    """
    if not raw or not raw.strip():
        raise InvalidPhoneNumber("Phone number is required")

    stripped = raw.strip()
    digits = _NON_DIGITS.sub("", stripped)

    if stripped.startswith("+") and not digits.startswith("1"):
        if not 8 <= len(digits) <= 15:
            raise InvalidPhoneNumber(f"Invalid international number: {raw}")
        return f"+{digits}"

    if digits.startswith("001"):
        digits = digits[3:]
    elif digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]

    if len(digits) != 10:
        raise InvalidPhoneNumber(
            f"Phone number must have exactly 10 digits (found {len(digits)})"
        )

    area_code = digits[:3]
    if area_code[0] in "01":
        raise InvalidPhoneNumber(f"Invalid area code {area_code}")
    if area_code in RESERVED_AREA_CODES:
        raise InvalidPhoneNumber(f"Area code {area_code} is reserved")

    return f"+1{digits}"


def mask_phone_number(phone_number: str) -> str:
    """Mask all but the last four digits for logging."""
    if len(phone_number) <= 4:
        return phone_number
    return "*" * (len(phone_number) - 4) + phone_number[-4:]
