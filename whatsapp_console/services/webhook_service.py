"""
Webhook Service
Verifies the Meta webhook subscription and stores incoming WhatsApp events

Flow for a messages change:
1. Extract display text for the message type
2. Relay attached media (expired media is stored without a URL)
3. Insert the webhook_messages row as unread and unreplied
4. Record incoming activity in the conversation ledger

Status changes update message_history.status for the matching message ID.
"""
import logging
import secrets
from typing import Optional, Dict, Any, Tuple

import httpx
from postgrest.exceptions import APIError

from whatsapp_console.exceptions import ConsoleError, ForbiddenError, ValidationError
from whatsapp_console.models.webhook import WebhookAckResponse, WebhookChangeValue, WebhookStatus, WhatsAppWebhookPayload
from whatsapp_console.services.conversation_service import ConversationService
from whatsapp_console.services.media_service import MediaService
from whatsapp_console.services.settings_service import SettingsService
from whatsapp_console.utils.phone import normalize_phone_number
from whatsapp_console.utils.timestamps import parse_timestamp, utc_now_iso

logger = logging.getLogger(__name__)

WHATSAPP_OBJECT = "whatsapp_business_account"
SUBSCRIBE_MODE = "subscribe"
MEDIA_TYPES = ("image", "video", "audio", "document", "sticker")


def extract_message_content(message: Dict[str, Any]) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """
    Get display text and media reference from a webhook message object

    Returns:
        Tuple of (text, media_id, mime_type)
    """
    message_type = message.get("type")

    if message_type == "text":
        return (message.get("text") or {}).get("body"), None, None

    if message_type == "button":
        return (message.get("button") or {}).get("text"), None, None

    if message_type == "interactive":
        interactive = message.get("interactive") or {}
        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
        return reply.get("title"), None, None

    if message_type in MEDIA_TYPES:
        media = message.get(message_type) or {}
        return media.get("caption"), media.get("id"), media.get("mime_type")

    return None, None, None


class WebhookService:
    """Service for WhatsApp Cloud API webhook events"""

    def __init__(
        self,
        supabase,
        settings_service: Optional[SettingsService] = None,
        conversation_service: Optional[ConversationService] = None,
        media_service: Optional[MediaService] = None
    ):
        self.supabase = supabase
        self.settings_service = settings_service or SettingsService(supabase)
        self.conversation_service = conversation_service or ConversationService(supabase)
        self.media_service = media_service or MediaService(supabase, settings_service=self.settings_service)

    def verify(self, mode: Optional[str], token: Optional[str], challenge: Optional[str]) -> str:
        """
        Answer the Meta subscription handshake

        Args:
            mode: hub.mode, must be "subscribe"
            token: hub.verify_token, must match the stored verify token
            challenge: hub.challenge, echoed back on success

        Returns:
            The challenge

        Raises:
            ValidationError: If a parameter is missing
            ForbiddenError: If no token is configured or the token/mode does not match
        """
        if not mode or not token or not challenge:
            raise ValidationError("Missing parameters")

        current = self.settings_service.get_settings()
        expected = current.webhook_verify_token if current else None

        if not expected:
            logger.warning("Webhook verification attempted before a verify token was configured")
            raise ForbiddenError()

        if mode != SUBSCRIBE_MODE or not secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
            logger.warning(f"Webhook verification failed (mode={mode})")
            raise ForbiddenError()

        logger.info("✅ Webhook verified")
        return challenge

    async def process(self, payload: WhatsAppWebhookPayload) -> WebhookAckResponse:
        """
        Store all messages and status updates in a webhook event

        Failures for individual messages are logged and do not stop the
        rest of the event from being processed.
        """
        if payload.object != WHATSAPP_OBJECT:
            logger.info(f"Ignoring webhook object '{payload.object}'")
            return WebhookAckResponse(success=True)

        processed_messages = 0
        processed_statuses = 0
        had_errors = False

        for entry in payload.entry:
            for change in entry.changes:
                if change.field != "messages":
                    continue

                value = change.value
                for message in value.messages:
                    try:
                        if await self._store_message(message, value):
                            processed_messages += 1
                    except (ConsoleError, APIError, httpx.HTTPError) as e:
                        had_errors = True
                        logger.error(f"❌ Failed to store webhook message {message.get('id')}: {e}")

                for status_update in value.statuses:
                    try:
                        self._apply_status(status_update)
                        processed_statuses += 1
                    except (APIError, httpx.HTTPError) as e:
                        had_errors = True
                        logger.error(f"❌ Failed to apply status for {status_update.id}: {e}")

        logger.info(f"📱 Webhook processed: {processed_messages} messages, {processed_statuses} statuses")
        return WebhookAckResponse(
            success=not had_errors,
            processed_messages=processed_messages,
            processed_statuses=processed_statuses
        )

    async def _store_message(self, message: Dict[str, Any], value: WebhookChangeValue) -> bool:
        """Insert one inbound message. Returns False for a redelivered message."""
        message_id = message.get("id")
        from_number = normalize_phone_number(message.get("from") or "")
        if not from_number:
            raise ValidationError("Webhook message has no sender")

        # Meta redelivers events until it sees a 200
        if message_id:
            existing = self.supabase.table("webhook_messages") \
                .select("id") \
                .eq("message_id", message_id) \
                .limit(1) \
                .execute()
            if existing.data:
                logger.info(f"♻️ Skipping duplicate webhook message {message_id}")
                return False

        contact_name = next(
            (
                c.profile.name
                for c in value.contacts
                if c.profile and c.profile.name and normalize_phone_number(c.wa_id or "") == from_number
            ),
            None
        )

        message_type = message.get("type")
        text, media_id, mime_type = extract_message_content(message)

        media_url = None
        if media_id:
            try:
                media = await self.media_service.fetch(media_id)
                if not media.expired:
                    media_url = media.data_url
                    mime_type = media.mime_type or mime_type
            except ConsoleError as e:
                logger.warning(f"⚠️  Media {media_id} not relayed: {e.message}")

        sent_at = parse_timestamp(message.get("timestamp"))

        self.supabase.table("webhook_messages").insert({
            "message_id": message_id,
            "from_number": from_number,
            "from_name": contact_name,
            "to_number": normalize_phone_number(value.metadata.get("display_phone_number") or ""),
            "message_type": message_type,
            "message_text": text,
            "message_media_url": media_url,
            "message_media_mime_type": mime_type,
            "timestamp": sent_at.isoformat() if sent_at else utc_now_iso(),
            "status": "unread",
            "replied": False,
        }).execute()

        self.conversation_service.record_activity(
            from_number,
            text,
            is_outgoing=False,
            contact_name=contact_name
        )

        logger.info(f"📥 Stored {message_type} message from {from_number}")
        return True

    def _apply_status(self, status_update: WebhookStatus) -> None:
        self.supabase.table("message_history") \
            .update({"status": status_update.status}) \
            .eq("message_id", status_update.id) \
            .execute()
        logger.debug(f"Message {status_update.id} status -> {status_update.status}")


def get_webhook_service(supabase) -> WebhookService:
    return WebhookService(supabase)
