"""
Spreadsheet Service
Extracts recipient phone numbers from uploaded Excel/CSV files
"""
import io
import logging
from typing import Dict, Any, List

import pandas as pd

from whatsapp_console.exceptions import ValidationError
from whatsapp_console.utils.country_codes import DEFAULT_COUNTRY
from whatsapp_console.utils.phone import format_and_validate

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = (".csv", ".txt")


def _read_first_column(content: bytes, filename: str) -> List[str]:
    buffer = io.BytesIO(content)
    if (filename or "").lower().endswith(CSV_EXTENSIONS):
        df = pd.read_csv(buffer, header=None, dtype=str, usecols=[0], skip_blank_lines=True)
    else:
        # First sheet only
        df = pd.read_excel(buffer, header=None, dtype=str, usecols=[0], sheet_name=0)

    if df.empty:
        return []

    values = []
    for val in df.iloc[:, 0]:
        if pd.isna(val):
            continue
        val_str = str(val).strip()
        # Numeric cells can come back as "512345678.0"
        if val_str.endswith(".0") and val_str[:-2].isdigit():
            val_str = val_str[:-2]
        if val_str:
            values.append(val_str)
    return values


def parse_phone_spreadsheet(content: bytes, filename: str, country_code: str = DEFAULT_COUNTRY) -> Dict[str, Any]:
    """
    Read phone numbers from the first column of a spreadsheet.

    There is no header row. Blank cells are skipped and every value is
    formatted for the country and kept only if it is a valid WhatsApp
    number.

    Args:
        content: Uploaded file bytes (.xlsx, .xls or .csv)
        filename: Original filename, used to pick the reader
        country_code: ISO country code used to format local numbers

    Returns:
        Dictionary with phone_numbers and count

    Raises:
        ValidationError: If the file is empty or cannot be read
    """
    if not content:
        raise ValidationError("No file uploaded")

    try:
        raw_values = _read_first_column(content, filename)
    except Exception as e:
        logger.error(f"Spreadsheet parsing failed for {filename}: {e}")
        raise ValidationError(f"Failed to read file: {e}")

    phone_numbers = []
    for raw_value in raw_values:
        formatted = format_and_validate(raw_value, country_code)
        if formatted:
            phone_numbers.append(formatted)

    logger.info(f"📄 {filename}: {len(phone_numbers)} valid numbers out of {len(raw_values)} rows")
    return {"phone_numbers": phone_numbers, "count": len(phone_numbers)}
