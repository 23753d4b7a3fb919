"""
Settings API Endpoints
Read and save the WhatsApp Business API credentials
"""
from fastapi import APIRouter, HTTPException, Depends, status
from supabase import Client
import logging

from whatsapp_console.api.errors import http_error
from whatsapp_console.exceptions import ConsoleError
from whatsapp_console.models.settings import SettingsSaveRequest
from whatsapp_console.services.database import get_supabase_client
from whatsapp_console.services.settings_service import SettingsService, get_settings_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


def settings_service_dependency(supabase: Client = Depends(get_supabase_client)) -> SettingsService:
    return get_settings_service(supabase)


@router.get(
    "",
    status_code=status.HTTP_200_OK,
    summary="Get API settings",
    description="Return the saved WhatsApp Business API settings, or null when nothing has been saved"
)
async def get_api_settings(service: SettingsService = Depends(settings_service_dependency)):
    try:
        current = service.get_settings()
        return {"success": True, "settings": current.model_dump() if current else None}

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error fetching API settings: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch settings: {str(e)}"
        )


@router.post(
    "",
    status_code=status.HTTP_200_OK,
    summary="Save API settings",
    description="Create the settings record, or update the supplied fields of the existing one"
)
async def save_api_settings(
    request: SettingsSaveRequest,
    service: SettingsService = Depends(settings_service_dependency)
):
    try:
        saved = service.save_settings(request)
        return {"success": True, "settings": saved.model_dump()}

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error saving API settings: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to save settings: {str(e)}"
        )


@router.post(
    "/regenerate-token",
    status_code=status.HTTP_200_OK,
    summary="Regenerate webhook verify token"
)
async def regenerate_verify_token(service: SettingsService = Depends(settings_service_dependency)):
    try:
        updated = service.regenerate_verify_token()
        return {
            "success": True,
            "webhook_verify_token": updated.webhook_verify_token,
            "settings": updated.model_dump()
        }

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error regenerating verify token: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to regenerate token: {str(e)}"
        )
