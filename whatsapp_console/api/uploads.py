"""
Recipient Import API Endpoints
Extract phone numbers from uploaded spreadsheets or pasted text
"""
from fastapi import APIRouter, HTTPException, File, Form, UploadFile, status
import logging

from whatsapp_console.api.errors import http_error
from whatsapp_console.config import settings
from whatsapp_console.exceptions import ConsoleError
from whatsapp_console.models.messages import PhoneListRequest
from whatsapp_console.services.spreadsheet_service import parse_phone_spreadsheet
from whatsapp_console.utils.phone import validate_and_filter_phone_numbers

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recipients"])


@router.post(
    "/parse-excel",
    status_code=status.HTTP_200_OK,
    summary="Parse phone numbers from a spreadsheet",
    description="Reads the first column of the first sheet (.xlsx, .xls or .csv) and keeps valid WhatsApp numbers"
)
async def parse_excel(
    file: UploadFile = File(..., description="Spreadsheet with phone numbers in the first column"),
    country_code: str = Form(settings.DEFAULT_COUNTRY_CODE, alias="countryCode", description="ISO country code")
):
    try:
        content = await file.read()
        result = parse_phone_spreadsheet(content, file.filename or "", country_code)
        return {"success": True, **result}

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error parsing spreadsheet {file.filename}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to parse file: {str(e)}"
        )


@router.post(
    "/parse-phone-numbers",
    status_code=status.HTTP_200_OK,
    summary="Validate a pasted list of phone numbers",
    description="Numbers separated by newlines, commas or semicolons are formatted, validated and de-duplicated"
)
async def parse_phone_numbers(request: PhoneListRequest):
    result = validate_and_filter_phone_numbers(request.text, request.country_code)
    return {
        "success": True,
        "valid_numbers": result.valid_numbers,
        "invalid_numbers": result.invalid_numbers,
        "duplicates": result.duplicates,
        "statistics": result.statistics
    }
