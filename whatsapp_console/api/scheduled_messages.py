"""
Scheduled Messages API Endpoints
Schedule, list, edit, cancel and send-now for stored template sends
"""
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query, status
from supabase import Client
import logging

from whatsapp_console.api.errors import http_error
from whatsapp_console.exceptions import ConsoleError
from whatsapp_console.models.scheduled import (
    ScheduledDispatchResult,
    ScheduledMessagesResponse,
    ScheduleMessageRequest,
    ScheduleUpdateRequest,
    SendNowRequest,
)
from whatsapp_console.services.database import get_supabase_client
from whatsapp_console.services.scheduled_message_service import (
    ScheduledMessageService,
    get_scheduled_message_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduled-messages", tags=["scheduled messages"])


def scheduled_service_dependency(supabase: Client = Depends(get_supabase_client)) -> ScheduledMessageService:
    return get_scheduled_message_service(supabase)


@router.get("", response_model=ScheduledMessagesResponse, summary="List scheduled messages")
async def list_scheduled_messages(
    service: ScheduledMessageService = Depends(scheduled_service_dependency)
):
    try:
        return ScheduledMessagesResponse(success=True, messages=service.list_scheduled())

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error listing scheduled messages: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch scheduled messages: {str(e)}"
        )


@router.post(
    "",
    status_code=status.HTTP_200_OK,
    summary="Schedule a template send",
    description="Store a template send for delivery by the process-scheduled-messages cron job"
)
async def schedule_message(
    request: ScheduleMessageRequest,
    service: ScheduledMessageService = Depends(scheduled_service_dependency)
):
    try:
        row = await service.schedule(request)
        return {"success": True, "scheduledMessage": row}

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error scheduling message: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to schedule message: {str(e)}"
        )


@router.patch(
    "",
    summary="Edit a scheduled message",
    description="Change a pending scheduled message. A time at or before now sends it immediately."
)
async def update_scheduled_message(
    request: ScheduleUpdateRequest,
    service: ScheduledMessageService = Depends(scheduled_service_dependency)
):
    try:
        return await service.update(request)

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error updating scheduled message {request.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update scheduled message: {str(e)}"
        )


@router.delete("", summary="Cancel a scheduled message")
async def cancel_scheduled_message(
    id: Optional[str] = Query(None, description="Scheduled message ID"),
    service: ScheduledMessageService = Depends(scheduled_service_dependency)
):
    try:
        service.cancel(id)
        return {"success": True}

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error cancelling scheduled message {id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete scheduled message: {str(e)}"
        )


@router.post(
    "/send-now",
    response_model=ScheduledDispatchResult,
    summary="Send a scheduled message now"
)
async def send_scheduled_message_now(
    request: SendNowRequest,
    service: ScheduledMessageService = Depends(scheduled_service_dependency)
):
    try:
        return await service.send_now(request.message_id)

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error sending scheduled message {request.message_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to send scheduled message: {str(e)}"
        )
