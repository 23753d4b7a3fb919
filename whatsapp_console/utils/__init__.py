"""Utility functions"""
from .phone import (
    normalize_phone_number,
    format_phone_number,
    is_valid_whatsapp_number,
    format_and_validate,
    validate_and_filter_phone_numbers,
)
from .timestamps import parse_timestamp, utc_now, utc_now_iso

__all__ = [
    "normalize_phone_number",
    "format_phone_number",
    "is_valid_whatsapp_number",
    "format_and_validate",
    "validate_and_filter_phone_numbers",
    "parse_timestamp",
    "utc_now",
    "utc_now_iso",
]
