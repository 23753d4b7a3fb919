"""
Media Service
Relays WhatsApp media to the browser and uploads files to the provider media store (tracked in uploaded_media)

WhatsApp media URLs are short-lived and require the access token, so media
is downloaded server side and returned inline as a base64 data URL.
"""
import base64
import logging
from typing import Optional, Dict, Any, Callable

import httpx
from postgrest.exceptions import APIError

from whatsapp_console.exceptions import ExternalApiError, NotFoundError, StorageError, ValidationError
from whatsapp_console.models.settings import ApiSettings
from whatsapp_console.models.whatsapp import MediaFetchResult, MediaUploadResponse
from whatsapp_console.services.database import SchemaCapabilities
from whatsapp_console.services.settings_service import SettingsService
from whatsapp_console.services.whatsapp_service import WhatsAppService, get_whatsapp_service
from whatsapp_console.utils.timestamps import utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"
UPLOADED_MEDIA_TABLE = "uploaded_media"

MEGABYTE = 1024 * 1024
# Provider size limits per header media type
MAX_UPLOAD_BYTES = {
    "IMAGE": 5 * MEGABYTE,
    "VIDEO": 16 * MEGABYTE,
    "DOCUMENT": 100 * MEGABYTE,
}
DEFAULT_MAX_UPLOAD_BYTES = 5 * MEGABYTE
DEFAULT_UPLOAD_MIME_TYPE = "application/octet-stream"

# Graph API "object does not exist" for a media ID past its retention window
EXPIRED_MEDIA_CODE = 100
EXPIRED_MEDIA_SUBCODE = 33


def is_expired_media_error(error: ExternalApiError) -> bool:
    return error.code == EXPIRED_MEDIA_CODE and error.subcode == EXPIRED_MEDIA_SUBCODE


def to_data_url(content: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(content).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


class MediaService:
    """Service for WhatsApp media retrieval and uploaded media records"""

    def __init__(
        self,
        supabase,
        settings_service: Optional[SettingsService] = None,
        capabilities: Optional[SchemaCapabilities] = None,
        whatsapp_factory: Callable[[ApiSettings], WhatsAppService] = get_whatsapp_service
    ):
        """
        Initialize Media Service

        Args:
            supabase: Supabase client instance
            settings_service: Credentials store (default: built from supabase)
            capabilities: Optional-table capability check (default: built from supabase)
            whatsapp_factory: Builds a Graph API client from loaded credentials
        """
        self.supabase = supabase
        self.settings_service = settings_service or SettingsService(supabase)
        self.capabilities = capabilities or SchemaCapabilities(supabase)
        self.whatsapp_factory = whatsapp_factory

    async def fetch(self, media_id: Optional[str]) -> MediaFetchResult:
        """
        Download a WhatsApp media object as a data URL

        Media that can no longer be retrieved (network failure, provider
        code 100/33, no download URL, failed download) is reported as
        expired rather than raised.

        Args:
            media_id: Media ID from an inbound message

        Returns:
            MediaFetchResult with either data_url or expired=True

        Raises:
            ValidationError: Empty media ID
            ConfigurationError: Credentials not saved
            TokenExpiredError: Access token rejected
            ExternalApiError: Any other provider error
        """
        if not media_id:
            raise ValidationError("Media ID is required")

        credentials = self.settings_service.require_settings()
        whatsapp_service = self.whatsapp_factory(credentials)

        # Step 1: Resolve media ID to a download URL
        try:
            media_info = await whatsapp_service.get_media_info(media_id)
        except httpx.HTTPError as e:
            logger.warning(f"⚠️  Media {media_id} metadata unreachable, treating as expired: {e}")
            return MediaFetchResult.expired_media()
        except ExternalApiError as e:
            if is_expired_media_error(e):
                logger.info(f"Media {media_id} has expired")
                return MediaFetchResult.expired_media()
            raise

        media_url = media_info.get("url")
        if not media_url:
            logger.warning(f"⚠️  Media {media_id} has no download URL")
            return MediaFetchResult.expired_media()

        # Step 2: Download the binary
        try:
            content, content_type = await whatsapp_service.download_media(media_url)
        except httpx.HTTPError as e:
            logger.warning(f"⚠️  Media {media_id} download failed: {e}")
            return MediaFetchResult.expired_media()

        mime_type = media_info.get("mime_type") or (content_type or "").split(";")[0].strip() or DEFAULT_MIME_TYPE

        logger.info(f"✅ Media {media_id} fetched ({len(content)} bytes, {mime_type})")
        return MediaFetchResult(data_url=to_data_url(content, mime_type), mime_type=mime_type)

    async def upload(
        self,
        content: Optional[bytes],
        filename: Optional[str],
        mime_type: Optional[str] = None,
        media_type: Optional[str] = None
    ) -> MediaUploadResponse:
        """
        Upload a file to the provider media store and record it locally

        The size limit depends on `media_type` (IMAGE 5MB, VIDEO 16MB,
        DOCUMENT 100MB, otherwise 5MB). The uploaded_media record is
        best-effort and skipped when the table is not provisioned.

        Args:
            content: File bytes
            filename: Original file name
            mime_type: File MIME type
            media_type: IMAGE, VIDEO or DOCUMENT

        Returns:
            MediaUploadResponse with the provider media ID

        Raises:
            ValidationError: No file, or file over the size limit
            ConfigurationError: Credentials not saved
            ExternalApiError: Provider rejected the upload
        """
        if not content or not filename:
            raise ValidationError("No file provided")

        max_size = MAX_UPLOAD_BYTES.get((media_type or "").upper(), DEFAULT_MAX_UPLOAD_BYTES)
        if len(content) > max_size:
            raise ValidationError(f"File too large. Maximum size is {max_size // MEGABYTE}MB")

        mime_type = mime_type or DEFAULT_UPLOAD_MIME_TYPE
        credentials = self.settings_service.require_settings()

        logger.info(f"📤 Uploading {filename} ({len(content)} bytes, {mime_type})")
        result = await self.whatsapp_factory(credentials).upload_media(content, filename, mime_type)
        media_id = result["id"]

        self._record_upload(media_id, filename, mime_type, content)

        return MediaUploadResponse(
            success=True,
            media_id=media_id,
            file_name=filename,
            file_size=len(content),
            mime_type=mime_type
        )

    def _record_upload(self, media_id: str, filename: str, mime_type: str, content: bytes) -> None:
        try:
            if not self.capabilities.has_uploaded_media:
                return

            self.supabase.table(UPLOADED_MEDIA_TABLE) \
                .insert({
                    "media_id": media_id,
                    "filename": filename,
                    "mime_type": mime_type,
                    "file_size": len(content),
                    "preview_url": to_data_url(content, mime_type),
                    "uploaded_at": utc_now_iso(),
                }) \
                .execute()
        except APIError as e:
            logger.warning(f"⚠️  Failed to record uploaded media {media_id}: {e.message}")

    def list_uploaded(self, limit: int = 50) -> Dict[str, Any]:
        """
        List uploaded media records, most recent first

        Returns:
            Dictionary with `media` rows and a `table_not_found` flag

        Raises:
            StorageError: If the query fails
        """
        if not self.capabilities.has_uploaded_media:
            return {"media": [], "table_not_found": True}

        try:
            response = self.supabase.table(UPLOADED_MEDIA_TABLE) \
                .select("*") \
                .order("uploaded_at", desc=True) \
                .limit(limit) \
                .execute()
        except APIError as e:
            logger.error(f"Error fetching uploaded media: {e.message}")
            raise StorageError("Failed to fetch media")

        return {"media": response.data or [], "table_not_found": False}

    def delete_uploaded(self, media_record_id: Optional[str]) -> None:
        """
        Delete one uploaded media record

        Raises:
            ValidationError: Empty ID
            NotFoundError: No record with this ID
            StorageError: If the delete fails
        """
        if not media_record_id:
            raise ValidationError("Media ID is required")

        try:
            response = self.supabase.table(UPLOADED_MEDIA_TABLE) \
                .delete() \
                .eq("id", media_record_id) \
                .execute()
        except APIError as e:
            logger.error(f"Error deleting uploaded media {media_record_id}: {e.message}")
            raise StorageError("Failed to delete media")

        if not response.data:
            raise NotFoundError("Media not found")

        logger.info(f"🗑️  Uploaded media {media_record_id} deleted")


def get_media_service(supabase) -> MediaService:
    """
    Create a MediaService for the request's Supabase client

    Args:
        supabase: Supabase client instance

    Returns:
        MediaService instance
    """
    return MediaService(supabase)
