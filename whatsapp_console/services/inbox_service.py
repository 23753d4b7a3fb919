"""
Inbox Service
Lists inbound webhook messages and updates their read status
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Any, List

from postgrest.exceptions import APIError

from whatsapp_console.exceptions import NotFoundError, StorageError, ValidationError
from whatsapp_console.models.messages import MessageStatus
from whatsapp_console.utils.timestamps import parse_timestamp

logger = logging.getLogger(__name__)

TABLE = "webhook_messages"
_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _activity_time(message: Dict[str, Any]) -> datetime:
    return parse_timestamp(message.get("reply_sent_at")) or parse_timestamp(message.get("created_at")) or _EPOCH


def sort_inbox(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Order messages for the inbox view

    Unread messages come first. Within each group, messages are ordered by
    reply time when present, else creation time, newest first. Ties keep
    their input order.
    """
    by_time = sorted(messages, key=_activity_time, reverse=True)
    return sorted(by_time, key=lambda m: m.get("status") != MessageStatus.UNREAD.value)


class InboxService:
    """Service for the inbound message inbox"""

    def __init__(self, supabase):
        """
        Initialize Inbox Service

        Args:
            supabase: Supabase client instance
        """
        self.supabase = supabase

    def list_messages(self) -> List[Dict[str, Any]]:
        """
        Return all inbound messages in inbox order

        Raises:
            StorageError: If messages cannot be read
        """
        try:
            response = self.supabase.table(TABLE) \
                .select("*") \
                .order("created_at", desc=True) \
                .execute()
        except APIError as e:
            logger.error(f"Error fetching inbox messages: {e.message}")
            raise StorageError("Failed to fetch messages")

        messages = sort_inbox(response.data or [])
        logger.info(f"Inbox fetched: {len(messages)} messages")
        return messages

    def update_status(self, message_id: str, status: str) -> Dict[str, Any]:
        """
        Set the read status of one message

        Args:
            message_id: Row ID of the webhook message
            status: "unread" or "read"

        Returns:
            The updated row

        Raises:
            ValidationError: Missing ID or unknown status
            NotFoundError: No message with this ID
            StorageError: If the update fails
        """
        if not message_id:
            raise ValidationError("Message ID is required")

        allowed = {s.value for s in MessageStatus}
        if status not in allowed:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(sorted(allowed))}")

        try:
            response = self.supabase.table(TABLE) \
                .update({"status": status}) \
                .eq("id", message_id) \
                .execute()
        except APIError as e:
            logger.error(f"Error updating message {message_id}: {e.message}")
            raise StorageError("Failed to update message")

        if not response.data:
            raise NotFoundError("Message not found")

        logger.info(f"✅ Message {message_id} marked as {status}")
        return response.data[0]


def get_inbox_service(supabase) -> InboxService:
    return InboxService(supabase)
