"""
Phone number utility tests

Normalization is the identity key for messages and conversations, so it
must be total and idempotent.
"""

import pytest

from whatsapp_console.utils.country_codes import get_country_by_code, get_country_by_dial_code
from whatsapp_console.utils.phone import (
    format_and_validate,
    format_phone_number,
    is_valid_whatsapp_number,
    normalize_phone_number,
    validate_and_filter_phone_numbers,
)


class TestNormalize:

    @pytest.mark.parametrize("raw, expected", [
        ("+966 51-234-5678", "966512345678"),
        ("(050) 123 4567", "0501234567"),
        ("abc", ""),
        ("", ""),
        (None, ""),
    ])
    def test_strips_non_digits(self, raw, expected):
        assert normalize_phone_number(raw) == expected

    def test_idempotent(self):
        once = normalize_phone_number("+20 (10) 1234-5678")
        assert normalize_phone_number(once) == once

    def test_same_identity_for_different_formats(self):
        assert normalize_phone_number("+966512345678") == normalize_phone_number("966-51-234-5678")

    def test_only_ascii_digits_survive(self):
        assert normalize_phone_number("+٩٦٦ ٥١٢٣٤٥٦٧٨") == ""
        assert normalize_phone_number("+966 ٥12345678") == "96612345678"


class TestFormat:

    def test_local_saudi_number_gets_dial_code(self):
        assert format_phone_number("0512345678") == "+966512345678"

    def test_already_international(self):
        assert format_phone_number("+966512345678") == "+966512345678"
        assert format_phone_number("00966512345678") == "+966512345678"

    def test_other_country(self):
        assert format_phone_number("01012345678", "EG") == "+201012345678"

    def test_unknown_country_falls_back_to_saudi(self):
        assert format_phone_number("512345678", "ZZ") == "+966512345678"

    def test_country_lookup_is_case_insensitive(self):
        assert get_country_by_code("ae").dial_code == "+971"
        assert get_country_by_dial_code("+44").code == "GB"


class TestValidate:

    @pytest.mark.parametrize("phone", [
        "+966512345678",
        "+9660512345678",
        "+201012345678",
        "+14155552671",
    ])
    def test_valid(self, phone):
        assert is_valid_whatsapp_number(phone)

    @pytest.mark.parametrize("phone", [
        "966512345678",       # no plus
        "+966412345678",      # saudi not starting with 5
        "+96651234567",       # saudi too short
        "+20101234567",       # egypt too short
        "+123456789",         # too short
        "+1234567890123456",  # too long
        "+966٥١٢٣٤٥٦٧٨",  # arabic-indic digits
    ])
    def test_invalid(self, phone):
        assert not is_valid_whatsapp_number(phone)

    def test_format_and_validate(self):
        assert format_and_validate("0512345678", "SA") == "+966512345678"
        assert format_and_validate("12345", "SA") is None


class TestValidateAndFilter:

    def test_report(self):
        text = "0512345678\n+966512345678, 0412345678; 05x1234567\n\n0598765432"

        result = validate_and_filter_phone_numbers(text, "SA")

        assert result.valid_numbers == ["+966512345678", "+966598765432"]
        assert result.duplicates == ["+966512345678"]
        assert [item["number"] for item in result.invalid_numbers] == ["0412345678", "05x1234567"]
        assert result.invalid_numbers[1]["reason"] == "Contains invalid characters"
        assert "start with 5" in result.invalid_numbers[0]["reason"]
        assert result.statistics == {"total": 5, "valid": 2, "invalid": 2, "duplicates": 1}

    def test_empty_text(self):
        result = validate_and_filter_phone_numbers("", "SA")
        assert result.total == 0
        assert result.valid_numbers == []
