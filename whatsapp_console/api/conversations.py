"""
Conversations API Endpoints
Conversation list, threads and read tracking
"""
from fastapi import APIRouter, HTTPException, Depends, status
from supabase import Client
import logging

from whatsapp_console.api.errors import http_error
from whatsapp_console.exceptions import ConsoleError
from whatsapp_console.models.messages import ConversationUpdateRequest, MarkReadRequest
from whatsapp_console.services.conversation_service import ConversationService, get_conversation_service
from whatsapp_console.services.database import get_supabase_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["conversations"])


def conversation_service_dependency(supabase: Client = Depends(get_supabase_client)) -> ConversationService:
    return get_conversation_service(supabase)


@router.get("", summary="List conversations")
async def list_conversations(service: ConversationService = Depends(conversation_service_dependency)):
    try:
        conversations = service.list_conversations()
        return {"success": True, "conversations": conversations, "count": len(conversations)}

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error listing conversations: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch conversations: {str(e)}"
        )


@router.post("/update", summary="Record conversation activity")
async def update_conversation(
    request: ConversationUpdateRequest,
    service: ConversationService = Depends(conversation_service_dependency)
):
    try:
        service.record_activity(
            request.phone,
            request.message_text,
            is_outgoing=request.is_outgoing,
            contact_name=request.contact_name
        )
        return {"success": True}

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error updating conversation {request.phone}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update conversation: {str(e)}"
        )


@router.post("/mark-read", summary="Mark conversation as read")
async def mark_conversation_read(
    request: MarkReadRequest,
    service: ConversationService = Depends(conversation_service_dependency)
):
    try:
        service.mark_read(request.phone)
        return {"success": True}

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error marking conversation {request.phone} as read: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to mark as read: {str(e)}"
        )


@router.get("/{phone}", summary="Get conversation thread")
async def get_conversation_thread(
    phone: str,
    service: ConversationService = Depends(conversation_service_dependency)
):
    try:
        messages = service.get_thread(phone)
        return {"success": True, "messages": messages, "count": len(messages)}

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error fetching thread for {phone}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch messages: {str(e)}"
        )
