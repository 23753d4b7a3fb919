"""
Conversation Service
Per-counterparty conversation summaries and read tracking

The conversations table is optional. When it is not provisioned, ledger
writes are skipped and reported as successful. Ledger failures never
surface to callers because the message itself was already delivered.

`conversations.unread_count` and the `replied`/`status` flags on
webhook_messages are maintained independently and can drift apart
(marking a conversation read does not reset its unread counter).
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

import httpx
from postgrest.exceptions import APIError

from whatsapp_console.exceptions import StorageError, ValidationError
from whatsapp_console.services.database import SchemaCapabilities
from whatsapp_console.utils.phone import normalize_phone_number
from whatsapp_console.utils.timestamps import parse_timestamp, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_TEXT = "Message"
_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class ConversationService:
    """Service for the conversation ledger"""

    def __init__(self, supabase, capabilities: Optional[SchemaCapabilities] = None):
        """
        Initialize Conversation Service

        Args:
            supabase: Supabase client instance
            capabilities: Optional-table capability check (default: built from supabase)
        """
        self.supabase = supabase
        self.capabilities = capabilities or SchemaCapabilities(supabase)

    def record_activity(
        self,
        phone: str,
        message_text: Optional[str],
        is_outgoing: bool,
        contact_name: Optional[str] = None
    ) -> None:
        """
        Upsert the conversation summary for a phone number.

        Outgoing activity sets has_replies and resets unread_count to 0.
        Incoming activity sets has_incoming_messages and increments
        unread_count by one. The increment is a read-modify-write and may
        lose updates under concurrent events.

        Raises:
            ValidationError: If phone is empty
        """
        if not phone:
            raise ValidationError("Phone number is required")

        normalized_phone = normalize_phone_number(phone)

        try:
            if not self.capabilities.has_conversations:
                return

            now = utc_now_iso()
            update_data: Dict[str, Any] = {
                "last_message_text": message_text or DEFAULT_MESSAGE_TEXT,
                "last_message_time": now,
                "last_message_is_outgoing": bool(is_outgoing),
                "updated_at": now,
            }
            if contact_name:
                update_data["contact_name"] = contact_name

            existing = self.supabase.table("conversations") \
                .select("*") \
                .eq("phone_number", normalized_phone) \
                .limit(1) \
                .execute()

            if existing.data:
                row = existing.data[0]
                if is_outgoing:
                    update_data["has_replies"] = True
                    update_data["unread_count"] = 0
                else:
                    update_data["has_incoming_messages"] = True
                    update_data["unread_count"] = (row.get("unread_count") or 0) + 1

                self.supabase.table("conversations") \
                    .update(update_data) \
                    .eq("phone_number", normalized_phone) \
                    .execute()
            else:
                self.supabase.table("conversations").insert({
                    "phone_number": normalized_phone,
                    "contact_name": contact_name,
                    **update_data,
                    "has_incoming_messages": not is_outgoing,
                    "has_replies": bool(is_outgoing),
                    "unread_count": 0 if is_outgoing else 1,
                }).execute()

            logger.debug(f"Conversation {normalized_phone} updated (outgoing={is_outgoing})")

        except APIError as e:
            logger.warning(f"⚠️  Conversation ledger update skipped for {normalized_phone}: {e.message}")
        except httpx.HTTPError as e:
            logger.warning(f"⚠️  Conversation ledger unreachable for {normalized_phone}: {e}")

    def mark_read(self, phone: str) -> None:
        """
        Mark every unreplied message from a phone number as replied.

        Does not modify conversations.unread_count.

        Raises:
            ValidationError: If phone is empty
            StorageError: If the update fails
        """
        if not phone:
            raise ValidationError("Phone number is required")

        normalized_phone = normalize_phone_number(phone)

        try:
            self.supabase.table("webhook_messages") \
                .update({"replied": True}) \
                .eq("from_number", normalized_phone) \
                .eq("replied", False) \
                .execute()
        except APIError as e:
            logger.error(f"Error marking messages as read for {normalized_phone}: {e.message}")
            raise StorageError("Failed to mark messages as read")

        logger.info(f"✅ Conversation {normalized_phone} marked as read")

    def list_conversations(self) -> List[Dict[str, Any]]:
        """
        Build conversation summaries from stored messages.

        Groups webhook_messages (incoming) and message_history (outgoing) by
        normalized phone number and orders them by latest activity. Works
        whether or not the conversations table exists.

        Raises:
            StorageError: If messages cannot be read
        """
        try:
            incoming = self.supabase.table("webhook_messages") \
                .select("*") \
                .order("created_at", desc=True) \
                .execute().data or []
            outgoing = self.supabase.table("message_history") \
                .select("*") \
                .order("created_at", desc=True) \
                .execute().data or []
        except APIError as e:
            logger.error(f"Error fetching messages for conversations: {e.message}")
            raise StorageError("Failed to fetch messages")

        conversations: Dict[str, Dict[str, Any]] = {}

        for message in incoming:
            phone = normalize_phone_number(message.get("from_number") or "")
            if not phone:
                continue
            message_time = parse_timestamp(message.get("timestamp")) or parse_timestamp(message.get("created_at")) or _EPOCH
            replied = bool(message.get("replied"))

            conv = conversations.get(phone)
            if conv is None:
                conversations[phone] = {
                    "phone_number": message.get("from_number"),
                    "contact_name": message.get("from_name") or message.get("from_number"),
                    "last_message_text": message.get("message_text") or "",
                    "last_message_time": message_time,
                    "last_message_is_outgoing": False,
                    "unread_count": 0 if replied else 1,
                    "has_incoming_messages": True,
                    "has_replies": False,
                    "is_read": replied,
                }
                continue

            conv["has_incoming_messages"] = True
            if not replied:
                conv["unread_count"] += 1
                conv["is_read"] = False
            if message_time > conv["last_message_time"]:
                conv["last_message_text"] = message.get("message_text") or ""
                conv["last_message_time"] = message_time
                conv["last_message_is_outgoing"] = False

        for message in outgoing:
            phone = normalize_phone_number(message.get("to_number") or "")
            if not phone:
                continue
            message_time = parse_timestamp(message.get("created_at")) or _EPOCH

            conv = conversations.get(phone)
            if conv is None:
                conversations[phone] = {
                    "phone_number": message.get("to_number"),
                    "contact_name": message.get("to_number"),
                    "last_message_text": message.get("message_text") or "",
                    "last_message_time": message_time,
                    "last_message_is_outgoing": True,
                    "unread_count": 0,
                    "has_incoming_messages": False,
                    "has_replies": True,
                    "is_read": True,
                }
                continue

            conv["has_replies"] = True
            if message_time > conv["last_message_time"]:
                conv["last_message_text"] = message.get("message_text") or ""
                conv["last_message_time"] = message_time
                conv["last_message_is_outgoing"] = True

        result = sorted(conversations.values(), key=lambda c: c["last_message_time"], reverse=True)
        for conv in result:
            conv["last_message_time"] = conv["last_message_time"].isoformat()
            conv["updated_at"] = conv["last_message_time"]
        return result

    def get_thread(self, phone: str) -> List[Dict[str, Any]]:
        """
        Return incoming and outgoing messages for one phone number, oldest first.

        Raises:
            ValidationError: If phone is empty
            StorageError: If messages cannot be read
        """
        normalized_phone = normalize_phone_number(phone or "")
        if not normalized_phone:
            raise ValidationError("Phone number is required")

        try:
            incoming = self.supabase.table("webhook_messages") \
                .select("*") \
                .eq("from_number", normalized_phone) \
                .order("created_at") \
                .execute().data or []
            outgoing = self.supabase.table("message_history") \
                .select("*") \
                .eq("to_number", normalized_phone) \
                .order("created_at") \
                .execute().data or []
        except APIError as e:
            logger.error(f"Error fetching thread for {normalized_phone}: {e.message}")
            raise StorageError("Failed to fetch messages")

        thread = [
            {
                "id": msg.get("id"),
                "type": "incoming",
                "timestamp": msg.get("created_at"),
                "message_text": msg.get("message_text") or "",
                "message_type": msg.get("message_type"),
                "from_number": msg.get("from_number"),
                "contact_name": msg.get("from_name"),
                "status": msg.get("status"),
                "replied": msg.get("replied"),
                "message_media_url": msg.get("message_media_url"),
            }
            for msg in incoming
        ] + [
            {
                "id": msg.get("id"),
                "type": "outgoing",
                "timestamp": msg.get("created_at"),
                "message_text": msg.get("message_text") or "",
                "to_number": msg.get("to_number"),
                "status": msg.get("status"),
                "template_name": msg.get("template_name"),
                "media_url": msg.get("media_url"),
            }
            for msg in outgoing
        ]

        thread.sort(key=lambda m: parse_timestamp(m["timestamp"]) or _EPOCH)
        logger.info(f"Thread {normalized_phone}: {len(thread)} messages")
        return thread


def get_conversation_service(supabase) -> ConversationService:
    """
    Create a ConversationService for the request's Supabase client

    Args:
        supabase: Supabase client instance

    Returns:
        ConversationService instance
    """
    return ConversationService(supabase)
