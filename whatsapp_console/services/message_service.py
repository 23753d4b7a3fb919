"""
Message Service
Sends outbound WhatsApp messages and keeps local message state in step

The external send always happens first. Local bookkeeping afterwards
(message history, reply flags, conversation ledger) is best-effort: a
failed write is logged and never rolled back or reported, since the
message has already been delivered.
"""
import asyncio
import logging
from typing import Optional, Dict, Any, List, Tuple, Callable
from urllib.parse import urlparse

import httpx
from postgrest.exceptions import APIError

from whatsapp_console.config import settings as app_settings
from whatsapp_console.exceptions import ExternalApiError, NotFoundError, TokenExpiredError, ValidationError
from whatsapp_console.models.settings import ApiSettings
from whatsapp_console.models.whatsapp import (
    BulkSendRequest,
    BulkSendResponse,
    BulkSendResult,
    FreeBulkSendRequest,
    ReplyResponse,
    SendTemplateRequest,
    SendTemplateResponse,
    TemplateParameters,
)
from whatsapp_console.services.conversation_service import ConversationService
from whatsapp_console.services.settings_service import SettingsService
from whatsapp_console.services.whatsapp_service import WhatsAppService, get_whatsapp_service
from whatsapp_console.utils.phone import normalize_phone_number
from whatsapp_console.utils.timestamps import utc_now_iso

logger = logging.getLogger(__name__)

MIN_PHONE_DIGITS = 10
HISTORY_TABLE = "message_history"


class MessageService:
    """Service for sending WhatsApp messages"""

    def __init__(
        self,
        supabase,
        settings_service: Optional[SettingsService] = None,
        conversation_service: Optional[ConversationService] = None,
        whatsapp_factory: Callable[[ApiSettings], WhatsAppService] = get_whatsapp_service
    ):
        """
        Initialize Message Service

        Args:
            supabase: Supabase client instance
            settings_service: Credentials store (default: built from supabase)
            conversation_service: Conversation ledger (default: built from supabase)
            whatsapp_factory: Builds a Graph API client from loaded credentials
        """
        self.supabase = supabase
        self.settings_service = settings_service or SettingsService(supabase)
        self.conversation_service = conversation_service or ConversationService(supabase)
        self.whatsapp_factory = whatsapp_factory

    # =========================================================
    # 1. REPLY (free text)
    # =========================================================
    async def send_reply(self, to_number: Optional[str], text: Optional[str]) -> ReplyResponse:
        """
        Send a free text reply and update local state.

        Flow:
        1. Validate input
        2. Load credentials (ConfigurationError before any external call)
        3. Send via Graph API (ExternalApiError surfaces to the caller)
        4. Record message history (best-effort)
        5. Mark the latest unreplied inbound message from this number as replied (best-effort)
        6. Record outgoing conversation activity (best-effort)

        Args:
            to_number: Recipient phone number, any format
            text: Message text

        Returns:
            ReplyResponse with the WhatsApp message ID
        """
        if not to_number or not text:
            raise ValidationError("Missing required fields")

        normalized_phone = normalize_phone_number(to_number)
        if not normalized_phone:
            raise ValidationError("Invalid phone number")

        credentials = self.settings_service.require_settings()

        logger.info(f"📤 Sending WhatsApp reply to: {normalized_phone}")
        whatsapp_service = self.whatsapp_factory(credentials)
        result = await whatsapp_service.send_text_message(normalized_phone, text)
        message_id = WhatsAppService.first_message(result).get("id")

        self._record_history({
            "message_id": message_id,
            "to_number": normalized_phone,
            "message_text": text,
            "message_type": "reply",
            "status": "sent",
        })
        self._mark_latest_replied(normalized_phone, text)
        self.conversation_service.record_activity(normalized_phone, text, is_outgoing=True)

        logger.info(f"✅ Reply sent to {normalized_phone}: {message_id}")
        return ReplyResponse(success=True, message_id=message_id)

    # =========================================================
    # 2. SINGLE TEMPLATE MESSAGE
    # =========================================================
    async def send_template(self, request: SendTemplateRequest) -> SendTemplateResponse:
        """
        Send an approved template to one number.

        Raises:
            ValidationError: Missing fields, short phone number or bad media URL
            ConfigurationError: Credentials not saved
            NotFoundError: Unknown template ID
            ExternalApiError: Provider rejected the request
        """
        if not request.phone_number or not request.template_id:
            raise ValidationError("Missing required fields")

        normalized_phone = normalize_phone_number(request.phone_number)
        if len(normalized_phone) < MIN_PHONE_DIGITS:
            raise ValidationError("Invalid phone number")

        credentials = self.settings_service.require_settings()
        whatsapp_service = self.whatsapp_factory(credentials)

        template = await self._resolve_template(whatsapp_service, request.template_id)
        params = request.template_params or TemplateParameters()
        components, body_text = build_template_components(template, params)

        logger.info(f"📤 Sending template '{template.get('name')}' to {normalized_phone}")
        result = await whatsapp_service.send_template_message(
            normalized_phone,
            template.get("name"),
            template.get("language"),
            components
        )
        sent = WhatsAppService.first_message(result)

        self._record_history({
            "message_id": sent.get("id"),
            "to_number": normalized_phone,
            "template_name": template.get("name"),
            "message_type": "single",
            "message_text": body_text,
            "media_url": params.media_value if params.media_type == "IMAGE" else None,
            "status": sent.get("message_status") or "sent",
        })
        self.conversation_service.record_activity(normalized_phone, body_text, is_outgoing=True)

        return SendTemplateResponse(
            success=True,
            message_id=sent.get("id"),
            status=sent.get("message_status"),
            info={
                "phoneNumber": normalized_phone,
                "templateName": template.get("name"),
                "templateCategory": template.get("category"),
            }
        )

    # =========================================================
    # 3. BULK TEMPLATE MESSAGES
    # =========================================================
    async def send_bulk(self, request: BulkSendRequest) -> BulkSendResponse:
        """
        Send an approved template to many numbers.

        Numbers are normalized and de-duplicated, then sent in groups of
        BULK_SEND_BATCH_SIZE concurrent requests. A failure for one number is
        recorded in its result and does not stop the run. There is no retry.
        """
        if not request.template_id:
            raise ValidationError("Missing required fields")

        recipients = unique_recipients(request.phone_numbers)
        if not recipients:
            raise ValidationError("No phone numbers provided")

        credentials = self.settings_service.require_settings()
        whatsapp_service = self.whatsapp_factory(credentials)

        template = await self._resolve_template(whatsapp_service, request.template_id)
        params = request.template_params or TemplateParameters()
        components, body_text = build_template_components(template, params)

        logger.info(f"📤 Bulk send of '{template.get('name')}' to {len(recipients)} numbers")

        results: List[BulkSendResult] = []
        batch_size = app_settings.BULK_SEND_BATCH_SIZE
        for start in range(0, len(recipients), batch_size):
            batch = recipients[start:start + batch_size]
            results.extend(await asyncio.gather(*[
                self._send_bulk_one(whatsapp_service, phone, template, components, body_text, params)
                for phone in batch
            ]))

        sent = sum(1 for r in results if r.success)
        failed = len(results) - sent
        logger.info(f"✅ Bulk send finished: {sent} sent, {failed} failed")

        return BulkSendResponse(success=sent > 0, total=len(results), sent=sent, failed=failed, results=results)

    async def _send_bulk_one(
        self,
        whatsapp_service: WhatsAppService,
        phone: str,
        template: Dict[str, Any],
        components: List[Dict[str, Any]],
        body_text: str,
        params: TemplateParameters
    ) -> BulkSendResult:
        try:
            result = await whatsapp_service.send_template_message(
                phone,
                template.get("name"),
                template.get("language"),
                components
            )
        except ExternalApiError as e:
            logger.warning(f"❌ Bulk send to {phone} failed: {e.message}")
            self._record_history({
                "to_number": phone,
                "template_name": template.get("name"),
                "message_type": "bulk_instant",
                "message_text": body_text,
                "status": "failed",
                "error_message": e.message,
            })
            return BulkSendResult(phone_number=phone, success=False, error=e.message)

        sent = WhatsAppService.first_message(result)
        self._record_history({
            "message_id": sent.get("id"),
            "to_number": phone,
            "template_name": template.get("name"),
            "message_type": "bulk_instant",
            "message_text": body_text,
            "media_url": params.media_value if params.media_type == "IMAGE" else None,
            "status": sent.get("message_status") or "sent",
        })
        self.conversation_service.record_activity(phone, body_text, is_outgoing=True)

        return BulkSendResult(phone_number=phone, success=True, message_id=sent.get("id"))

    # =========================================================
    # 4. BULK FREE TEXT MESSAGES
    # =========================================================
    async def send_free_bulk(self, request: FreeBulkSendRequest) -> BulkSendResponse:
        """
        Send free text, or an image captioned with the text, to many numbers.

        Free text is only delivered inside each recipient's 24 hour customer
        service window; per-number provider rejections are counted and the
        run continues. An expired access token aborts the run.

        Raises:
            ValidationError: No numbers, empty text or a malformed image URL
            ConfigurationError: Credentials not saved
            TokenExpiredError: The access token was rejected
        """
        recipients = unique_recipients(request.phone_numbers)
        if not recipients:
            raise ValidationError("No phone numbers provided")

        text = (request.message_text or "").strip()
        if not text:
            raise ValidationError("Message text is required")

        media_ref = _free_message_media(request)
        credentials = self.settings_service.require_settings()
        whatsapp_service = self.whatsapp_factory(credentials)

        logger.info(f"📤 Free message send to {len(recipients)} numbers ({'image' if media_ref else 'text'})")

        results: List[BulkSendResult] = []
        batch_size = app_settings.BULK_SEND_BATCH_SIZE
        for start in range(0, len(recipients), batch_size):
            batch = recipients[start:start + batch_size]
            results.extend(await asyncio.gather(*[
                self._send_free_one(whatsapp_service, phone, text, media_ref)
                for phone in batch
            ]))

        sent = sum(1 for r in results if r.success)
        failed = len(results) - sent
        logger.info(f"✅ Free message send finished: {sent} sent, {failed} failed")

        return BulkSendResponse(success=sent > 0, total=len(results), sent=sent, failed=failed, results=results)

    async def _send_free_one(
        self,
        whatsapp_service: WhatsAppService,
        phone: str,
        text: str,
        media_ref: Optional[Dict[str, str]]
    ) -> BulkSendResult:
        try:
            if media_ref:
                result = await whatsapp_service.send_image_message(phone, media_ref, caption=text)
            else:
                result = await whatsapp_service.send_text_message(phone, text)
        except TokenExpiredError:
            raise
        except ExternalApiError as e:
            logger.warning(f"❌ Free message to {phone} failed: {e.message}")
            return BulkSendResult(phone_number=phone, success=False, error=e.message)

        message_id = WhatsAppService.first_message(result).get("id")
        self._record_history({
            "message_id": message_id,
            "to_number": phone,
            "message_type": "bulk_free",
            "message_text": text,
            "media_url": media_ref and (media_ref.get("link") or media_ref.get("id")),
            "status": "sent",
        })
        self.conversation_service.record_activity(phone, text, is_outgoing=True)

        return BulkSendResult(phone_number=phone, success=True, message_id=message_id)

    # =========================================================
    # HELPERS
    # =========================================================
    async def _resolve_template(self, whatsapp_service: WhatsAppService, template_id: str) -> Dict[str, Any]:
        return await resolve_template(whatsapp_service, template_id)

    def _record_history(self, row: Dict[str, Any]) -> None:
        record_history(self.supabase, row)

    def _mark_latest_replied(self, normalized_phone: str, reply_text: str) -> None:
        """Flag the most recent unreplied inbound message from this number as replied"""
        try:
            latest = self.supabase.table("webhook_messages") \
                .select("id") \
                .eq("from_number", normalized_phone) \
                .eq("replied", False) \
                .order("created_at", desc=True) \
                .limit(1) \
                .execute()

            if not latest.data:
                return

            self.supabase.table("webhook_messages") \
                .update({
                    "replied": True,
                    "reply_text": reply_text,
                    "reply_sent_at": utc_now_iso(),
                    "status": "read",
                }) \
                .eq("id", latest.data[0]["id"]) \
                .eq("replied", False) \
                .execute()
        except (APIError, httpx.HTTPError) as e:
            logger.warning(f"⚠️  Failed to mark inbound message as replied for {normalized_phone}: {e}")


def is_valid_media_url(value: Optional[str]) -> bool:
    parsed = urlparse(value or "")
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def unique_recipients(phone_numbers: List[str]) -> List[str]:
    """Normalized, de-duplicated recipients in input order, blanks dropped"""
    recipients: List[str] = []
    for phone in phone_numbers or []:
        normalized_phone = normalize_phone_number(phone)
        if normalized_phone and normalized_phone not in recipients:
            recipients.append(normalized_phone)
    return recipients


async def resolve_template(whatsapp_service: WhatsAppService, template_id: str) -> Dict[str, Any]:
    """
    Find a template of the business account by ID

    Raises:
        NotFoundError: If no template has this ID
        ExternalApiError: If the template list cannot be fetched
    """
    templates = await whatsapp_service.get_message_templates()
    template = next((t for t in templates if str(t.get("id")) == str(template_id)), None)
    if not template:
        raise NotFoundError("Template not found")
    return template


def record_history(supabase, row: Dict[str, Any]) -> None:
    """Best-effort message_history insert; failures are logged and swallowed"""
    try:
        supabase.table(HISTORY_TABLE).insert(row).execute()
    except (APIError, httpx.HTTPError) as e:
        logger.warning(f"⚠️  Failed to record message history for {row.get('to_number')}: {e}")


def _free_message_media(request: FreeBulkSendRequest) -> Optional[Dict[str, str]]:
    if request.media_input_type == "id":
        media_id = (request.media_value or "").strip()
        return {"id": media_id} if media_id else None

    media_url = (request.media_url or request.media_value or "").strip()
    if not media_url:
        return None
    if not is_valid_media_url(media_url):
        raise ValidationError("Invalid media URL")
    return {"link": media_url}


def build_template_components(
    template: Dict[str, Any],
    params: TemplateParameters
) -> Tuple[List[Dict[str, Any]], str]:
    """
    Build send components for a template and render its body text.

    Args:
        template: Template object from the Graph API
        params: Header media and body variables

    Returns:
        Tuple of (components for the send payload, body text with variables substituted)

    Raises:
        ValidationError: If a header media URL is malformed
    """
    template_components = template.get("components") or []
    header = next((c for c in template_components if c.get("type") == "HEADER"), None)
    body = next((c for c in template_components if c.get("type") == "BODY"), None)

    body_text = (body or {}).get("text") or ""
    for index, value in enumerate(params.body_variables, start=1):
        body_text = body_text.replace(f"{{{{{index}}}}}", value)

    components: List[Dict[str, Any]] = []

    if header and params.media_type and params.media_value:
        media_key = params.media_type.lower()
        if params.media_input_type == "url" and not is_valid_media_url(params.media_value):
            raise ValidationError("Invalid media URL")

        media_ref = {"id": params.media_value} if params.media_input_type == "id" else {"link": params.media_value}
        components.append({
            "type": "header",
            "parameters": [{"type": media_key, media_key: media_ref}]
        })

    if params.body_variables:
        components.append({
            "type": "body",
            "parameters": [{"type": "text", "text": value} for value in params.body_variables]
        })

    return components, body_text


def get_message_service(supabase) -> MessageService:
    """
    Create a MessageService for the request's Supabase client

    Args:
        supabase: Supabase client instance

    Returns:
        MessageService instance
    """
    return MessageService(supabase)
