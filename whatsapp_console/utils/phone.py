"""
Phone number utilities
Normalization, country formatting and WhatsApp number validation
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .country_codes import DEFAULT_COUNTRY, get_country_by_code

_NON_DIGIT = re.compile(r"[^0-9]")
_ASCII_DIGITS = re.compile(r"[0-9]+")
_FORMATTING_CHARS = re.compile(r"[\s\-()]")
_ALLOWED_INPUT = re.compile(r"^[0-9\s\-+()]+$")
_LIST_SEPARATORS = re.compile(r"[\n,;]+")


def normalize_phone_number(phone: str) -> str:
    """
    Strip every non-digit character.

    The digit-only form is the identity key used to match messages and
    conversations for the same counterparty. Only ASCII 0-9 count as
    digits; other scripts (e.g. Arabic-Indic) are removed.
    """
    return _NON_DIGIT.sub("", phone or "")


def _is_digits(value: str) -> bool:
    return bool(_ASCII_DIGITS.fullmatch(value))


def format_phone_number(phone: str, country_code: str = DEFAULT_COUNTRY) -> str:
    """
    Format a phone number to international form for the given country.

    Args:
        phone: Raw phone number as typed or imported (e.g. "0512345678")
        country_code: ISO country code, unknown codes fall back to SA

    Returns:
        Number prefixed with "+" and the country dial code (e.g. "+966512345678")
    """
    country = get_country_by_code(country_code) or get_country_by_code(DEFAULT_COUNTRY)

    cleaned = _FORMATTING_CHARS.sub("", phone or "")
    if cleaned.startswith("+"):
        cleaned = cleaned[1:]
    if cleaned.startswith("00"):
        cleaned = cleaned[2:]

    if cleaned.startswith(country.dial_digits):
        return "+" + cleaned

    if cleaned.startswith("0"):
        cleaned = cleaned[1:]

    return country.dial_code + cleaned


def is_valid_whatsapp_number(phone: str) -> bool:
    """
    Validate an international number against country-specific rules.

    Saudi Arabia: 9 local digits starting with 5, or 10 starting with 05.
    Egypt: exactly 10 local digits.
    Other countries: 10-15 digits in total.
    """
    if not phone or not phone.startswith("+"):
        return False

    number = phone[1:]

    if number.startswith("966"):
        local_part = number[3:]
        if len(local_part) == 9 and local_part.startswith("5"):
            return _is_digits(local_part)
        if len(local_part) == 10 and local_part.startswith("05"):
            return _is_digits(local_part)
        return False

    if number.startswith("20"):
        local_part = number[2:]
        return len(local_part) == 10 and _is_digits(local_part)

    return _is_digits(number) and 10 <= len(number) <= 15


def format_and_validate(phone: str, country_code: str = DEFAULT_COUNTRY) -> Optional[str]:
    """Format a number and return it only if it is a plausible WhatsApp number"""
    formatted = format_phone_number(phone, country_code)
    if is_valid_whatsapp_number(formatted):
        return formatted
    return None


@dataclass
class PhoneValidationResult:
    valid_numbers: List[str] = field(default_factory=list)
    invalid_numbers: List[Dict[str, str]] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)
    total: int = 0

    @property
    def statistics(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "valid": len(self.valid_numbers),
            "invalid": len(self.invalid_numbers),
            "duplicates": len(self.duplicates),
        }


def _invalid_reason(formatted: str) -> str:
    digits = normalize_phone_number(formatted)

    if formatted.startswith("+966"):
        local_part = digits[3:]
        if len(local_part) < 9:
            return "Saudi number too short (9 digits starting with 5, or 10 starting with 05)"
        if len(local_part) > 10:
            return "Saudi number too long (9 or 10 digits only)"
        if len(local_part) == 9 and not local_part.startswith("5"):
            return "Saudi number must start with 5 (e.g. 512345678)"
        if len(local_part) == 10 and not local_part.startswith("05"):
            return "10-digit Saudi number must start with 05 (e.g. 0512345678)"
        return "Invalid Saudi number format"

    if formatted.startswith("+20"):
        local_part = digits[2:]
        if len(local_part) < 10:
            return "Egyptian number too short (must be 10 digits)"
        if len(local_part) > 10:
            return "Egyptian number too long (must be 10 digits)"
        return "Invalid Egyptian number format"

    if len(digits) < 10:
        return "Number too short (fewer than 10 digits)"
    if len(digits) > 15:
        return "Number too long (more than 15 digits)"
    return "Invalid format"


def validate_and_filter_phone_numbers(text: str, country_code: str = DEFAULT_COUNTRY) -> PhoneValidationResult:
    """
    Validate a free-text list of phone numbers.

    Numbers may be separated by newlines, commas or semicolons. Each entry is
    formatted for the country, checked, and de-duplicated.
    """
    raw_numbers = [n.strip() for n in _LIST_SEPARATORS.split(text or "") if n.strip()]
    result = PhoneValidationResult(total=len(raw_numbers))
    seen = set()

    for raw_number in raw_numbers:
        if not _ALLOWED_INPUT.match(raw_number):
            result.invalid_numbers.append({"number": raw_number, "reason": "Contains invalid characters"})
            continue

        formatted = format_phone_number(raw_number, country_code)

        if not is_valid_whatsapp_number(formatted):
            result.invalid_numbers.append({"number": raw_number, "reason": _invalid_reason(formatted)})
            continue

        if formatted in seen:
            result.duplicates.append(formatted)
            continue

        seen.add(formatted)
        result.valid_numbers.append(formatted)

    return result
