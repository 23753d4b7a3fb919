"""
Webhook API Endpoints
Meta WhatsApp Cloud API subscription verification and event delivery
"""
from typing import Optional, Dict, Any

from fastapi import APIRouter, Body, HTTPException, Depends, Query, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError as PydanticValidationError
from supabase import Client
import logging

from whatsapp_console.api.errors import http_error
from whatsapp_console.exceptions import ConsoleError
from whatsapp_console.models.webhook import WebhookAckResponse, WhatsAppWebhookPayload
from whatsapp_console.services.database import get_supabase_client
from whatsapp_console.services.webhook_service import WebhookService, get_webhook_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhook"])


def webhook_service_dependency(supabase: Client = Depends(get_supabase_client)) -> WebhookService:
    return get_webhook_service(supabase)


@router.get(
    "",
    response_class=PlainTextResponse,
    summary="Verify webhook subscription",
    description="Meta calls this with hub.mode, hub.verify_token and hub.challenge when the webhook is registered"
)
async def verify_webhook(
    hub_mode: Optional[str] = Query(None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(None, alias="hub.challenge"),
    service: WebhookService = Depends(webhook_service_dependency)
):
    try:
        challenge = service.verify(hub_mode, hub_verify_token, hub_challenge)
        return PlainTextResponse(content=challenge, status_code=status.HTTP_200_OK)

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"❌ Error verifying webhook: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Webhook verification failed: {str(e)}"
        )


@router.post(
    "",
    response_model=WebhookAckResponse,
    status_code=status.HTTP_200_OK,
    summary="Receive WhatsApp events",
    description="Stores inbound messages and applies delivery status updates. Always answers 200."
)
async def receive_webhook(
    payload: Dict[str, Any] = Body(...),
    service: WebhookService = Depends(webhook_service_dependency)
):
    try:
        event = WhatsAppWebhookPayload.model_validate(payload)
        logger.info(f"📱 WhatsApp webhook received ({len(event.entry)} entries)")
        return await service.process(event)

    except PydanticValidationError as e:
        logger.warning(f"⚠️  Ignoring malformed webhook payload: {e.error_count()} validation errors")
        return JSONResponse(
            status_code=200,
            content={"success": False, "error": "Malformed payload"}
        )
    except Exception as e:
        logger.error(f"❌ Error processing WhatsApp webhook: {e}")
        # Return 200 OK with error details to stop Meta from retrying indefinitely
        return JSONResponse(
            status_code=200,
            content={"success": False, "error": str(e)}
        )
