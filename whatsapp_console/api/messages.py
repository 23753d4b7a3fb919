"""
Messages API Endpoints
Inbox listing, read status and free text replies
"""
from fastapi import APIRouter, HTTPException, Depends, status
from supabase import Client
import logging

from whatsapp_console.api.errors import http_error
from whatsapp_console.exceptions import ConsoleError
from whatsapp_console.models.messages import MessageStatusUpdateRequest
from whatsapp_console.models.whatsapp import ReplyRequest, ReplyResponse
from whatsapp_console.services.database import get_supabase_client
from whatsapp_console.services.inbox_service import InboxService, get_inbox_service
from whatsapp_console.services.message_service import MessageService, get_message_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


def inbox_service_dependency(supabase: Client = Depends(get_supabase_client)) -> InboxService:
    return get_inbox_service(supabase)


def message_service_dependency(supabase: Client = Depends(get_supabase_client)) -> MessageService:
    return get_message_service(supabase)


@router.get(
    "",
    status_code=status.HTTP_200_OK,
    summary="List inbox messages",
    description="Unread messages first, then by latest activity (reply time or creation time), newest first"
)
async def list_messages(service: InboxService = Depends(inbox_service_dependency)):
    try:
        messages = service.list_messages()
        return {"success": True, "messages": messages}

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error fetching messages: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch messages: {str(e)}"
        )


@router.patch(
    "",
    status_code=status.HTTP_200_OK,
    summary="Update message status",
    description="Mark an inbox message as read or unread"
)
async def update_message_status(
    request: MessageStatusUpdateRequest,
    service: InboxService = Depends(inbox_service_dependency)
):
    try:
        updated = service.update_status(request.id, request.status)
        return {"success": True, "message": updated}

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error updating message {request.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update message: {str(e)}"
        )


@router.post(
    "/reply",
    response_model=ReplyResponse,
    status_code=status.HTTP_200_OK,
    summary="Reply to a conversation",
    description="Send a free text WhatsApp message and mark the latest inbound message from that number as replied"
)
async def reply_to_message(
    request: ReplyRequest,
    service: MessageService = Depends(message_service_dependency)
):
    """
    Send a free text reply.

    Flow:
    1. Validate recipient and text
    2. Load API settings
    3. Send via WhatsApp Graph API
    4. Record history, reply flags and conversation activity

    Raises:
        HTTPException: 400 invalid input, 500 missing settings,
            provider status on WhatsApp errors (401 with errorType TOKEN_EXPIRED)
    """
    try:
        return await service.send_reply(request.to_number, request.text)

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error sending reply to {request.to_number}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to send message: {str(e)}"
        )
