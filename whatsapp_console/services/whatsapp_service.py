"""
WhatsApp Service
Handles integration with the Meta WhatsApp Cloud (Graph) API
Based on: https://developers.facebook.com/docs/whatsapp/cloud-api
"""
import logging
import httpx
from typing import Optional, Dict, Any, List, Tuple

from whatsapp_console.config import settings as app_settings
from whatsapp_console.exceptions import ExternalApiError, TokenExpiredError
from whatsapp_console.models.settings import ApiSettings

logger = logging.getLogger(__name__)

TOKEN_EXPIRED_CODE = 190
OAUTH_EXCEPTION = "OAuthException"


def is_token_expired_error(error: Dict[str, Any]) -> bool:
    return error.get("code") == TOKEN_EXPIRED_CODE or error.get("type") == OAUTH_EXCEPTION


class WhatsAppService:
    """Client for one WhatsApp Business phone number, bound to explicit credentials"""

    def __init__(
        self,
        credentials: ApiSettings,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize WhatsApp Service

        Args:
            credentials: Stored API settings (phone number ID, business account ID, access token)
            base_url: Versioned Graph API base URL (default: from settings)
            timeout: Request timeout in seconds (default: from settings)
            transport: Optional httpx transport, used to stub the Graph API
        """
        self.credentials = credentials
        self.base_url = (base_url or app_settings.whatsapp_api_base_url).rstrip("/")
        self.timeout = timeout or app_settings.WHATSAPP_API_TIMEOUT
        self.transport = transport

    def _get_headers(self) -> Dict[str, str]:
        """
        Get HTTP headers for API requests

        Returns:
            Headers dictionary
        """
        return {
            "Authorization": f"Bearer {self.credentials.access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json"
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {"data": body}

    def _raise_for_error(self, response: httpx.Response, body: Dict[str, Any], default_message: str) -> None:
        """
        Raise ExternalApiError (or TokenExpiredError) for a Graph API error response.

        The provider HTTP status is passed through unchanged.
        """
        if not response.is_error and "error" not in body:
            return

        error = body.get("error") or {}
        message = error.get("message") or default_message
        code = error.get("code")
        subcode = error.get("error_subcode")

        if is_token_expired_error(error):
            logger.warning(f"WhatsApp access token rejected (HTTP {response.status_code}): {message}")
            raise TokenExpiredError(
                message,
                status_code=response.status_code if response.is_error else 401,
                code=code,
                subcode=subcode
            )

        details = (error.get("error_data") or {}).get("details")
        if details:
            message = f"{message} - {details}"

        status_code = response.status_code if response.is_error else 502
        logger.error(f"WhatsApp API error (HTTP {response.status_code}, code {code}): {message}")
        raise ExternalApiError(message, status_code=status_code, code=code, subcode=subcode)

    async def _post_message(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/{self.credentials.phone_number_id}/messages"

        try:
            async with self._client() as client:
                response = await client.post(url, json=payload, headers=self._get_headers())
        except httpx.HTTPError as e:
            logger.error(f"Failed to reach WhatsApp API: {e}")
            raise ExternalApiError(f"Message sending failed: {str(e)}", status_code=502)

        body = self._json(response)
        self._raise_for_error(response, body, "Failed to send message")
        return body

    @staticmethod
    def first_message(body: Dict[str, Any]) -> Dict[str, Any]:
        """First entry of the `messages` array of a send response"""
        messages = body.get("messages") or []
        return messages[0] if messages else {}

    async def send_text_message(self, to_number: str, text: str) -> Dict[str, Any]:
        """
        Send a free-form text message

        Only deliverable inside the 24 hour customer service window.

        Args:
            to_number: Recipient phone number
            text: Message body

        Returns:
            Graph API response containing messages[0].id

        Raises:
            ExternalApiError: If the provider rejects the message
        """
        payload = {
            "messaging_product": "whatsapp",
            "to": to_number,
            "type": "text",
            "text": {"body": text}
        }

        result = await self._post_message(payload)
        logger.info(f"✅ WhatsApp text message sent to {to_number}: {self.first_message(result).get('id')}")
        return result

    async def send_image_message(
        self,
        to_number: str,
        media_ref: Dict[str, str],
        caption: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Send an image, optionally with a caption

        Args:
            to_number: Recipient phone number
            media_ref: {"link": url} for a public URL or {"id": media_id} for uploaded media
            caption: Optional text shown under the image

        Raises:
            ExternalApiError: If the provider rejects the message
        """
        image = dict(media_ref)
        if caption:
            image["caption"] = caption

        payload = {
            "messaging_product": "whatsapp",
            "to": to_number,
            "type": "image",
            "image": image
        }

        result = await self._post_message(payload)
        logger.info(f"✅ WhatsApp image message sent to {to_number}: {self.first_message(result).get('id')}")
        return result

    async def send_template_message(
        self,
        to_number: str,
        template_name: str,
        language_code: str,
        components: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """
        Send an approved template message

        Args:
            to_number: Recipient phone number (digits only)
            template_name: Template name
            language_code: Template language code (e.g., "ar", "en_US")
            components: Optional header/body parameter components

        Returns:
            Graph API response containing messages[0].id and message_status

        Raises:
            ExternalApiError: If the provider rejects the message
        """
        payload: Dict[str, Any] = {
            "messaging_product": "whatsapp",
            "to": to_number,
            "type": "template",
            "template": {
                "name": template_name,
                "language": {"code": language_code}
            }
        }
        if components:
            payload["template"]["components"] = components

        result = await self._post_message(payload)
        logger.info(f"✅ WhatsApp template '{template_name}' sent to {to_number}")
        return result

    async def get_message_templates(self) -> List[Dict[str, Any]]:
        """
        List message templates of the business account

        Returns:
            Template objects (id, name, language, status, category, components)

        Raises:
            ExternalApiError: If the provider rejects the request
        """
        url = f"{self.base_url}/{self.credentials.business_account_id}/message_templates"
        params = {"fields": "id,name,language,status,components,category"}

        try:
            async with self._client() as client:
                response = await client.get(url, params=params, headers=self._get_headers())
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch templates: {e}")
            raise ExternalApiError(f"Failed to fetch templates: {str(e)}", status_code=502)

        body = self._json(response)
        self._raise_for_error(response, body, "Failed to fetch templates")

        templates = body.get("data") or []
        logger.info(f"Templates fetched: {len(templates)}")
        return templates

    async def get_phone_number_info(self) -> Dict[str, Any]:
        """
        Fetch details of the configured phone number (used as a connectivity test)

        Returns:
            Phone number object with display_phone_number and verified_name

        Raises:
            ExternalApiError: If the provider rejects the credentials
        """
        url = f"{self.base_url}/{self.credentials.phone_number_id}"

        try:
            async with self._client() as client:
                response = await client.get(url, headers=self._get_headers())
        except httpx.HTTPError as e:
            logger.error(f"WhatsApp API connection error: {e}")
            raise ExternalApiError(f"Connection failed: {str(e)}", status_code=502)

        body = self._json(response)
        self._raise_for_error(response, body, "Connection failed")
        return body

    async def upload_media(self, content: bytes, filename: str, mime_type: str) -> Dict[str, Any]:
        """
        Upload a file to the phone number's media store

        The returned media ID can be used in template headers and image
        messages until the provider expires it.

        Args:
            content: File bytes
            filename: Original file name
            mime_type: File MIME type (e.g. "image/jpeg")

        Returns:
            Graph API response containing the media `id`

        Raises:
            ExternalApiError: If the provider rejects the upload or returns no ID
        """
        url = f"{self.base_url}/{self.credentials.phone_number_id}/media"

        try:
            async with self._client() as client:
                response = await client.post(
                    url,
                    data={"messaging_product": "whatsapp", "type": mime_type},
                    files={"file": (filename, content, mime_type)},
                    headers={"Authorization": f"Bearer {self.credentials.access_token}"}
                )
        except httpx.HTTPError as e:
            logger.error(f"Failed to upload media: {e}")
            raise ExternalApiError(f"Media upload failed: {str(e)}", status_code=502)

        body = self._json(response)
        self._raise_for_error(response, body, "Failed to upload media")

        if not body.get("id"):
            raise ExternalApiError("No media ID returned", status_code=502)

        logger.info(f"✅ Media uploaded: {filename} -> {body['id']}")
        return body

    async def get_media_info(self, media_id: str) -> Dict[str, Any]:
        """
        Resolve a media ID to its short-lived download URL

        Args:
            media_id: Media ID from an inbound message

        Returns:
            Media object with url, mime_type, sha256, file_size

        Raises:
            ExternalApiError: If the provider returns an error payload, whatever the HTTP status
            httpx.HTTPError: On network failure
        """
        url = f"{self.base_url}/{media_id}"

        async with self._client() as client:
            response = await client.get(url, headers={"Authorization": f"Bearer {self.credentials.access_token}"})

        body = self._json(response)
        self._raise_for_error(response, body, "Failed to fetch media info")
        return body

    async def download_media(self, media_url: str) -> Tuple[bytes, Optional[str]]:
        """
        Download media binary from a URL returned by get_media_info

        Returns:
            Tuple of (content bytes, content-type header)

        Raises:
            httpx.HTTPError: On network failure or non-success status
        """
        async with self._client() as client:
            response = await client.get(
                media_url,
                headers={"Authorization": f"Bearer {self.credentials.access_token}"}
            )
            response.raise_for_status()

        return response.content, response.headers.get("content-type")


def get_whatsapp_service(credentials: ApiSettings) -> WhatsAppService:
    """
    Create a WhatsAppService bound to the given credentials

    Args:
        credentials: Settings loaded for the current request

    Returns:
        WhatsAppService instance
    """
    return WhatsAppService(credentials)
