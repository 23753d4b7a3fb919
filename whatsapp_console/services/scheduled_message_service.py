"""
Scheduled Message Service
Template sends stored in scheduled_messages and delivered later

A row moves pending -> processing -> sent | partial | failed. Only pending
rows can be edited, cancelled or sent. Delivery is triggered by the
process-scheduled-messages cron job or by an explicit send-now; there is no
in-process timer.
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List, Callable

import httpx
from postgrest.exceptions import APIError

from whatsapp_console.config import settings as app_settings
from whatsapp_console.exceptions import ExternalApiError, NotFoundError, StorageError, ValidationError
from whatsapp_console.models.scheduled import (
    ScheduledDispatchResult,
    ScheduleMessageRequest,
    ScheduleUpdateRequest,
)
from whatsapp_console.models.settings import ApiSettings
from whatsapp_console.services.conversation_service import ConversationService
from whatsapp_console.services.message_service import (
    is_valid_media_url,
    record_history,
    resolve_template,
    unique_recipients,
)
from whatsapp_console.services.settings_service import SettingsService
from whatsapp_console.services.whatsapp_service import WhatsAppService, get_whatsapp_service
from whatsapp_console.utils.timestamps import parse_timestamp, utc_now, utc_now_iso

logger = logging.getLogger(__name__)

TABLE = "scheduled_messages"

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_SENT = "sent"
STATUS_PARTIAL = "partial"
STATUS_FAILED = "failed"

HEADER_MEDIA_FORMATS = ("IMAGE", "VIDEO", "DOCUMENT")


def _header_media_type(template: Dict[str, Any]) -> Optional[str]:
    header = next((c for c in template.get("components") or [] if c.get("type") == "HEADER"), None)
    media_format = (header or {}).get("format")
    return media_format if media_format in HEADER_MEDIA_FORMATS else None


def _template_fields(template: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "template_name": template.get("name"),
        "template_params": {"name": template.get("name"), "language": template.get("language")},
        "media_type": _header_media_type(template),
    }


def _parse_scheduled_time(value: Optional[str]) -> datetime:
    scheduled_at = parse_timestamp(value)
    if scheduled_at is None:
        raise ValidationError("Invalid scheduled time")
    return scheduled_at


def _check_media_url(value: Optional[str]) -> None:
    if value and not is_valid_media_url(value):
        raise ValidationError("Invalid media URL")


def final_status(sent: int, failed: int) -> str:
    """sent when nothing failed, failed when nothing was sent, otherwise partial"""
    if failed == 0:
        return STATUS_SENT
    if sent == 0:
        return STATUS_FAILED
    return STATUS_PARTIAL


class ScheduledMessageService:
    """Service for scheduling and delivering template sends"""

    def __init__(
        self,
        supabase,
        settings_service: Optional[SettingsService] = None,
        conversation_service: Optional[ConversationService] = None,
        whatsapp_factory: Callable[[ApiSettings], WhatsAppService] = get_whatsapp_service
    ):
        """
        Initialize Scheduled Message Service

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
    # 1. SCHEDULE / LIST / CANCEL / EDIT
    # =========================================================
    async def schedule(self, request: ScheduleMessageRequest, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Store a template send for later delivery

        Raises:
            ValidationError: Missing fields, a time not in the future or a bad media URL
            ConfigurationError: Credentials not saved
            NotFoundError: Unknown template ID
            StorageError: If the insert fails
        """
        recipients = unique_recipients(request.phone_numbers)
        if not recipients or not request.template_id or not request.scheduled_time:
            raise ValidationError("Missing required fields")

        scheduled_at = _parse_scheduled_time(request.scheduled_time)
        if scheduled_at <= (now or utc_now()):
            raise ValidationError("Scheduled time must be in the future")
        _check_media_url(request.image_url)

        credentials = self.settings_service.require_settings()
        template = await resolve_template(self.whatsapp_factory(credentials), request.template_id)

        row = {
            "scheduled_time": scheduled_at.isoformat(),
            **_template_fields(template),
            "phone_numbers": recipients,
            "media_url": request.image_url or None,
            "total_numbers": len(recipients),
            "status": STATUS_PENDING,
        }

        try:
            response = self.supabase.table(TABLE).insert(row).execute()
        except APIError as e:
            logger.error(f"Error scheduling message: {e.message}")
            raise StorageError("Failed to schedule message")

        if not response.data:
            raise StorageError("Failed to schedule message")

        logger.info(f"🗓️  Template '{template.get('name')}' scheduled for {scheduled_at.isoformat()} to {len(recipients)} numbers")
        return response.data[0]

    def list_scheduled(self) -> List[Dict[str, Any]]:
        """All scheduled messages, soonest first"""
        try:
            response = self.supabase.table(TABLE) \
                .select("*") \
                .order("scheduled_time") \
                .execute()
        except APIError as e:
            logger.error(f"Error fetching scheduled messages: {e.message}")
            raise StorageError("Failed to fetch scheduled messages")

        return response.data or []

    def cancel(self, message_id: Optional[str]) -> None:
        """
        Delete a pending scheduled message

        Raises:
            ValidationError: Empty ID
            NotFoundError: No pending message with this ID
            StorageError: If the delete fails
        """
        if not message_id:
            raise ValidationError("Message ID is required")

        try:
            response = self.supabase.table(TABLE) \
                .delete() \
                .eq("id", message_id) \
                .eq("status", STATUS_PENDING) \
                .execute()
        except APIError as e:
            logger.error(f"Error cancelling scheduled message {message_id}: {e.message}")
            raise StorageError("Failed to delete scheduled message")

        if not response.data:
            raise NotFoundError("Scheduled message not found or already processed")

        logger.info(f"🗑️  Scheduled message {message_id} cancelled")

    async def update(self, request: ScheduleUpdateRequest, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Edit a pending scheduled message

        Only supplied fields change. A new scheduled time at or before now
        delivers the message straight away.

        Returns:
            Dictionary with `sentImmediately` and either the updated
            `scheduledMessage` row or the delivery `result`

        Raises:
            ValidationError: Empty ID, empty recipient list or bad media URL
            NotFoundError: No pending message with this ID, or unknown template
            StorageError: If the update fails
        """
        if not request.id:
            raise ValidationError("Message ID is required")

        current = self._pending_row(request.id)
        updates: Dict[str, Any] = {}

        if request.phone_numbers is not None:
            recipients = unique_recipients(request.phone_numbers)
            if not recipients:
                raise ValidationError("No phone numbers provided")
            updates["phone_numbers"] = recipients
            updates["total_numbers"] = len(recipients)

        if "image_url" in request.model_fields_set:
            _check_media_url(request.image_url)
            updates["media_url"] = request.image_url or None

        send_immediately = False
        if request.scheduled_time:
            scheduled_at = _parse_scheduled_time(request.scheduled_time)
            if scheduled_at <= (now or utc_now()):
                send_immediately = True
            else:
                updates["scheduled_time"] = scheduled_at.isoformat()

        if request.template_id:
            credentials = self.settings_service.require_settings()
            template = await resolve_template(self.whatsapp_factory(credentials), request.template_id)
            updates.update(_template_fields(template))

        if updates:
            try:
                response = self.supabase.table(TABLE) \
                    .update(updates) \
                    .eq("id", request.id) \
                    .eq("status", STATUS_PENDING) \
                    .execute()
            except APIError as e:
                logger.error(f"Error updating scheduled message {request.id}: {e.message}")
                raise StorageError("Failed to update scheduled message")

            if not response.data:
                raise NotFoundError("Scheduled message not found or already processed")
            current = response.data[0]

        if send_immediately:
            logger.info(f"Scheduled message {request.id} moved to the past, sending now")
            result = await self.send_now(request.id)
            return {"success": True, "sentImmediately": True, "result": result.model_dump()}

        return {"success": True, "sentImmediately": False, "scheduledMessage": current}

    # =========================================================
    # 2. DELIVERY
    # =========================================================
    async def send_now(self, message_id: Optional[str]) -> ScheduledDispatchResult:
        """
        Deliver one pending scheduled message immediately

        Raises:
            ValidationError: Empty ID
            NotFoundError: No pending message with this ID
            ConfigurationError: Credentials not saved
            StorageError: If the status update fails
        """
        if not message_id:
            raise ValidationError("Message ID is required")

        row = self._pending_row(message_id)
        credentials = self.settings_service.require_settings()
        whatsapp_service = self.whatsapp_factory(credentials)
        body_texts = await self._template_bodies(whatsapp_service)

        return await self._dispatch(row, whatsapp_service, body_texts)

    async def process_due(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Deliver every pending message whose time has come, oldest first

        A failure on one scheduled message marks it failed and processing
        moves on to the next.

        Raises:
            ConfigurationError: Due messages exist but credentials are not saved
            StorageError: If the due messages cannot be read
        """
        now = now or utc_now()

        try:
            response = self.supabase.table(TABLE) \
                .select("*") \
                .eq("status", STATUS_PENDING) \
                .lte("scheduled_time", now.isoformat()) \
                .order("scheduled_time") \
                .execute()
        except APIError as e:
            logger.error(f"Error fetching due scheduled messages: {e.message}")
            raise StorageError("Failed to fetch scheduled messages")

        due = response.data or []
        if not due:
            return {"success": True, "message": "No scheduled messages to process", "processed": 0, "results": []}

        logger.info(f"🗓️  Processing {len(due)} due scheduled messages")
        credentials = self.settings_service.require_settings()
        whatsapp_service = self.whatsapp_factory(credentials)
        body_texts = await self._template_bodies(whatsapp_service)

        results: List[ScheduledDispatchResult] = []
        for row in due:
            try:
                results.append(await self._dispatch(row, whatsapp_service, body_texts))
            except NotFoundError:
                logger.info(f"Scheduled message {row['id']} was claimed elsewhere, skipping")
            except StorageError as e:
                logger.error(f"❌ Scheduled message {row['id']} failed: {e.message}")
                self._mark_failed(row["id"], e.message)
                results.append(ScheduledDispatchResult(
                    id=str(row["id"]),
                    status=STATUS_FAILED,
                    total=row.get("total_numbers") or 0,
                    sent=0,
                    failed=0,
                    errors=[e.message]
                ))

        return {
            "success": True,
            "message": f"Processed {len(results)} scheduled messages",
            "processed": len(results),
            "results": [r.model_dump() for r in results],
        }

    async def _dispatch(
        self,
        row: Dict[str, Any],
        whatsapp_service: WhatsAppService,
        body_texts: Dict[str, str]
    ) -> ScheduledDispatchResult:
        """Claim a pending row, send to every recipient and store the outcome"""
        self._claim(row["id"])

        template_name = row.get("template_name")
        language = (row.get("template_params") or {}).get("language")
        body_text = body_texts.get(template_name, "")

        components: List[Dict[str, Any]] = []
        media_type = row.get("media_type")
        if media_type and row.get("media_url"):
            media_key = media_type.lower()
            components.append({
                "type": "header",
                "parameters": [{"type": media_key, media_key: {"link": row["media_url"]}}]
            })

        recipients = unique_recipients(row.get("phone_numbers") or [])
        errors: List[Optional[str]] = []
        batch_size = app_settings.BULK_SEND_BATCH_SIZE
        for start in range(0, len(recipients), batch_size):
            batch = recipients[start:start + batch_size]
            errors.extend(await asyncio.gather(*[
                self._send_one(whatsapp_service, phone, template_name, language, components, body_text)
                for phone in batch
            ]))

        failures = [error for error in errors if error]
        sent = len(errors) - len(failures)
        status = final_status(sent, len(failures))

        self._set_fields(row["id"], {
            "status": status,
            "sent_count": sent,
            "failed_count": len(failures),
            "processed_at": utc_now_iso(),
            "error_message": "; ".join(failures) or None,
        })

        logger.info(f"✅ Scheduled message {row['id']} {status}: {sent} sent, {len(failures)} failed")
        return ScheduledDispatchResult(
            id=str(row["id"]),
            status=status,
            total=len(recipients),
            sent=sent,
            failed=len(failures),
            errors=failures
        )

    async def _send_one(
        self,
        whatsapp_service: WhatsAppService,
        phone: str,
        template_name: str,
        language: str,
        components: List[Dict[str, Any]],
        body_text: str
    ) -> Optional[str]:
        """Send to one recipient; returns an error line, or None on success"""
        try:
            result = await whatsapp_service.send_template_message(phone, template_name, language, components)
        except ExternalApiError as e:
            logger.warning(f"❌ Scheduled send to {phone} failed: {e.message}")
            record_history(self.supabase, {
                "to_number": phone,
                "template_name": template_name,
                "message_text": body_text,
                "message_type": "bulk_scheduled",
                "status": STATUS_FAILED,
                "error_message": e.message,
            })
            return f"{phone}: {e.message}"

        record_history(self.supabase, {
            "message_id": WhatsAppService.first_message(result).get("id"),
            "to_number": phone,
            "template_name": template_name,
            "message_text": body_text,
            "message_type": "bulk_scheduled",
            "status": STATUS_SENT,
        })
        self.conversation_service.record_activity(phone, body_text, is_outgoing=True)
        return None

    # =========================================================
    # HELPERS
    # =========================================================
    async def _template_bodies(self, whatsapp_service: WhatsAppService) -> Dict[str, str]:
        """Template name -> body text, for history rows; empty when templates cannot be listed"""
        try:
            templates = await whatsapp_service.get_message_templates()
        except ExternalApiError as e:
            logger.warning(f"⚠️  Could not load templates for scheduled sends: {e.message}")
            return {}

        bodies = {}
        for template in templates:
            body = next((c for c in template.get("components") or [] if c.get("type") == "BODY"), None)
            bodies[template.get("name")] = (body or {}).get("text") or ""
        return bodies

    def _pending_row(self, message_id: str) -> Dict[str, Any]:
        try:
            response = self.supabase.table(TABLE) \
                .select("*") \
                .eq("id", message_id) \
                .eq("status", STATUS_PENDING) \
                .limit(1) \
                .execute()
        except APIError as e:
            logger.error(f"Error fetching scheduled message {message_id}: {e.message}")
            raise StorageError("Failed to fetch scheduled message")

        if not response.data:
            raise NotFoundError("Scheduled message not found or already processed")
        return response.data[0]

    def _claim(self, message_id: str) -> None:
        """Move pending -> processing; NotFoundError if another run got there first"""
        try:
            response = self.supabase.table(TABLE) \
                .update({"status": STATUS_PROCESSING}) \
                .eq("id", message_id) \
                .eq("status", STATUS_PENDING) \
                .execute()
        except APIError as e:
            logger.error(f"Error claiming scheduled message {message_id}: {e.message}")
            raise StorageError("Failed to update scheduled message")

        if not response.data:
            raise NotFoundError("Scheduled message not found or already processed")

    def _set_fields(self, message_id: str, values: Dict[str, Any]) -> None:
        try:
            self.supabase.table(TABLE).update(values).eq("id", message_id).execute()
        except APIError as e:
            logger.error(f"Error updating scheduled message {message_id}: {e.message}")
            raise StorageError("Failed to update scheduled message")

    def _mark_failed(self, message_id: str, error_message: str) -> None:
        try:
            self.supabase.table(TABLE) \
                .update({
                    "status": STATUS_FAILED,
                    "processed_at": utc_now_iso(),
                    "error_message": error_message,
                }) \
                .eq("id", message_id) \
                .execute()
        except (APIError, httpx.HTTPError) as e:
            logger.warning(f"⚠️  Could not mark scheduled message {message_id} as failed: {e}")


def get_scheduled_message_service(supabase) -> ScheduledMessageService:
    """
    Create a ScheduledMessageService for the request's Supabase client

    Args:
        supabase: Supabase client instance

    Returns:
        ScheduledMessageService instance
    """
    return ScheduledMessageService(supabase)
