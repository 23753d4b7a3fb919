"""
Spreadsheet recipient import tests
"""

import io

import pandas as pd
import pytest

from whatsapp_console.exceptions import ValidationError
from whatsapp_console.services.spreadsheet_service import parse_phone_spreadsheet


def _xlsx(rows):
    buffer = io.BytesIO()
    pd.DataFrame(rows).to_excel(buffer, header=False, index=False)
    return buffer.getvalue()


class TestParsePhoneSpreadsheet:

    def test_excel_first_column_only(self):
        content = _xlsx([
            ["0512345678", "Sara"],
            [None, "blank phone"],
            ["not a number", "x"],
            [598765432, "numeric cell"],
            ["00966 55 123 4567", "international prefix"],
        ])

        result = parse_phone_spreadsheet(content, "contacts.xlsx", "SA")

        assert result == {
            "phone_numbers": ["+966512345678", "+966598765432", "+966551234567"],
            "count": 3,
        }

    def test_csv(self):
        content = b"0512345678,Sara\n0412345678,Bad\n\n0598765432,Ali\n"

        result = parse_phone_spreadsheet(content, "contacts.csv", "SA")

        assert result["phone_numbers"] == ["+966512345678", "+966598765432"]
        assert result["count"] == 2

    def test_country_code_applies_to_local_numbers(self):
        result = parse_phone_spreadsheet(b"01012345678\n", "eg.csv", "EG")
        assert result["phone_numbers"] == ["+201012345678"]

    def test_empty_upload(self):
        with pytest.raises(ValidationError):
            parse_phone_spreadsheet(b"", "empty.xlsx")

    def test_unreadable_file(self):
        with pytest.raises(ValidationError):
            parse_phone_spreadsheet(b"this is not a workbook", "broken.xlsx")
