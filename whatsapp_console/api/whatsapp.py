"""
WhatsApp API Endpoints
Template and free text sending, template listing, connectivity test, media relay and media upload
"""
from typing import Optional, Callable

from fastapi import APIRouter, HTTPException, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import JSONResponse
from supabase import Client
import logging

from whatsapp_console.api.errors import http_error
from whatsapp_console.exceptions import ConsoleError, ExternalApiError, TokenExpiredError
from whatsapp_console.models.settings import ApiSettings, ConnectionStatusResponse
from whatsapp_console.models.whatsapp import (
    BulkSendRequest,
    BulkSendResponse,
    FreeBulkSendRequest,
    MediaFetchResult,
    MediaUploadResponse,
    SendTemplateRequest,
    SendTemplateResponse,
    TemplatesResponse,
)
from whatsapp_console.services.database import get_supabase_client
from whatsapp_console.services.media_service import MediaService, get_media_service
from whatsapp_console.services.message_service import MessageService, get_message_service
from whatsapp_console.services.settings_service import SettingsService, get_settings_service
from whatsapp_console.services.whatsapp_service import WhatsAppService, get_whatsapp_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["whatsapp"])


def message_service_dependency(supabase: Client = Depends(get_supabase_client)) -> MessageService:
    return get_message_service(supabase)


def media_service_dependency(supabase: Client = Depends(get_supabase_client)) -> MediaService:
    return get_media_service(supabase)


def settings_service_dependency(supabase: Client = Depends(get_supabase_client)) -> SettingsService:
    return get_settings_service(supabase)


def whatsapp_factory_dependency() -> Callable[[ApiSettings], WhatsAppService]:
    return get_whatsapp_service


# ============================================
# TEMPLATE SENDING
# ============================================

@router.post(
    "/send-message",
    response_model=SendTemplateResponse,
    status_code=status.HTTP_200_OK,
    summary="Send template message",
    description="Send an approved template message to a single phone number"
)
async def send_template_message(
    request: SendTemplateRequest,
    service: MessageService = Depends(message_service_dependency)
):
    try:
        return await service.send_template(request)

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error sending template to {request.phone_number}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to send message: {str(e)}"
        )


@router.post(
    "/send-bulk-messages",
    response_model=BulkSendResponse,
    status_code=status.HTTP_200_OK,
    summary="Send bulk template messages",
    description="Send an approved template to many numbers in groups of 5 concurrent requests"
)
async def send_bulk_messages(
    request: BulkSendRequest,
    service: MessageService = Depends(message_service_dependency)
):
    try:
        return await service.send_bulk(request)

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error sending bulk messages: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to send bulk messages: {str(e)}"
        )


@router.post(
    "/send-free-messages",
    response_model=BulkSendResponse,
    status_code=status.HTTP_200_OK,
    summary="Send free text messages in bulk",
    description="Send free text, or an image with the text as caption, to many numbers. Only delivered inside the 24 hour window."
)
async def send_free_messages(
    request: FreeBulkSendRequest,
    service: MessageService = Depends(message_service_dependency)
):
    try:
        return await service.send_free_bulk(request)

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error sending free messages: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to send messages: {str(e)}"
        )


# ============================================
# TEMPLATES & CONNECTIVITY
# ============================================

@router.get(
    "/templates",
    response_model=TemplatesResponse,
    summary="List message templates"
)
async def list_templates(
    service: SettingsService = Depends(settings_service_dependency),
    whatsapp_factory: Callable[[ApiSettings], WhatsAppService] = Depends(whatsapp_factory_dependency)
):
    try:
        credentials = service.require_settings()
        templates = await whatsapp_factory(credentials).get_message_templates()
        return TemplatesResponse(success=True, templates=templates)

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error fetching templates: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch templates: {str(e)}"
        )


@router.get(
    "/test-connection",
    response_model=ConnectionStatusResponse,
    summary="Test WhatsApp API connection",
    description="Check the saved credentials against the Graph API. Provider rejections are reported with connected=false."
)
async def test_connection(
    service: SettingsService = Depends(settings_service_dependency),
    whatsapp_factory: Callable[[ApiSettings], WhatsAppService] = Depends(whatsapp_factory_dependency)
):
    try:
        credentials = service.require_settings()

        try:
            info = await whatsapp_factory(credentials).get_phone_number_info()
        except ExternalApiError as e:
            logger.warning(f"⚠️  WhatsApp connection test failed: {e.message}")
            return ConnectionStatusResponse(
                connected=False,
                phone_number_id=credentials.phone_number_id,
                business_account_id=credentials.business_account_id,
                error=e.message,
                error_code=e.code,
                is_token_expired=isinstance(e, TokenExpiredError)
            )

        logger.info(f"✅ WhatsApp connection OK: {info.get('display_phone_number')}")
        return ConnectionStatusResponse(
            connected=True,
            phone_number_id=credentials.phone_number_id,
            business_account_id=credentials.business_account_id,
            phone_number=info.get("display_phone_number"),
            verified_name=info.get("verified_name")
        )

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error testing WhatsApp connection: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Connection test failed: {str(e)}"
        )


# ============================================
# MEDIA RELAY
# ============================================

@router.get(
    "/fetch-whatsapp-media",
    response_model=MediaFetchResult,
    summary="Fetch WhatsApp media",
    description="Download inbound media as a base64 data URL. Returns 410 when the media has expired.",
    responses={410: {"description": "Media expired"}}
)
async def fetch_whatsapp_media(
    media_id: Optional[str] = Query(None, alias="mediaId", description="Media ID from the inbound message"),
    service: MediaService = Depends(media_service_dependency)
):
    try:
        result = await service.fetch(media_id)

        if result.expired:
            return JSONResponse(
                status_code=status.HTTP_410_GONE,
                content={"error": "Media expired", "expired": True}
            )

        return result

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error fetching media {media_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch media: {str(e)}"
        )


# ============================================
# MEDIA UPLOAD
# ============================================

@router.post(
    "/upload-media",
    response_model=MediaUploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload media",
    description="Upload a file to the WhatsApp media store. Limits: IMAGE 5MB, VIDEO 16MB, DOCUMENT 100MB."
)
async def upload_media(
    file: Optional[UploadFile] = File(None, description="File to upload"),
    media_type: Optional[str] = Form(None, alias="mediaType", description="IMAGE, VIDEO or DOCUMENT"),
    service: MediaService = Depends(media_service_dependency)
):
    try:
        content = await file.read() if file else None
        return await service.upload(
            content,
            file.filename if file else None,
            mime_type=file.content_type if file else None,
            media_type=media_type
        )

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error uploading media: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to upload media: {str(e)}"
        )
