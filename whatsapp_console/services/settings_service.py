"""
Settings Service
Single-row store for WhatsApp Business API credentials (api_settings table)
"""
import logging
import secrets
from typing import Optional

from postgrest.exceptions import APIError

from whatsapp_console.exceptions import ConfigurationError, NotFoundError, StorageError, ValidationError
from whatsapp_console.models.settings import ApiSettings, SettingsSaveRequest
from whatsapp_console.utils.timestamps import utc_now_iso

logger = logging.getLogger(__name__)

TABLE = "api_settings"
REQUIRED_FIELDS = ("business_account_id", "phone_number_id", "access_token")


def generate_verify_token() -> str:
    """Random printable token for webhook subscription verification"""
    return f"whatsapp_verify_{secrets.token_hex(13)}"


class SettingsService:
    """Service for reading and saving the API settings record"""

    def __init__(self, supabase):
        """
        Initialize Settings Service

        Args:
            supabase: Supabase client instance
        """
        self.supabase = supabase

    def _first_row(self, columns: str = "*") -> Optional[dict]:
        try:
            response = self.supabase.table(TABLE).select(columns).limit(1).execute()
        except APIError as e:
            logger.error(f"Error fetching API settings: {e.message}")
            raise StorageError("Failed to fetch settings")

        return response.data[0] if response.data else None

    def get_settings(self) -> Optional[ApiSettings]:
        """Return the settings record, or None when nothing has been saved yet"""
        row = self._first_row()
        return ApiSettings(**row) if row else None

    def require_settings(self) -> ApiSettings:
        """
        Return the settings record for an operation that needs credentials

        Raises:
            ConfigurationError: If no complete settings record exists
        """
        current = self.get_settings()
        if not current or not all(getattr(current, f) for f in REQUIRED_FIELDS):
            raise ConfigurationError()
        return current

    def save_settings(self, data: SettingsSaveRequest) -> ApiSettings:
        """
        Create or update the settings record

        The table is treated as a singleton: an existing row is updated in
        place with only the supplied fields, otherwise a row is inserted.

        Raises:
            ValidationError: If a required credential is missing
            StorageError: If the write fails
        """
        missing = [f for f in REQUIRED_FIELDS if not getattr(data, f)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        existing = self._first_row("id")
        supplied = data.model_dump(exclude_none=True)
        # A blank verify token would make every webhook handshake fail
        if not (supplied.get("webhook_verify_token") or "").strip():
            supplied.pop("webhook_verify_token", None)

        try:
            if existing:
                supplied["updated_at"] = utc_now_iso()
                response = self.supabase.table(TABLE) \
                    .update(supplied) \
                    .eq("id", existing["id"]) \
                    .execute()
            else:
                supplied["webhook_verify_token"] = supplied.get("webhook_verify_token") or generate_verify_token()
                response = self.supabase.table(TABLE) \
                    .insert(supplied) \
                    .execute()
        except APIError as e:
            logger.error(f"Error saving API settings: {e.message}")
            raise StorageError("Failed to save settings")

        if not response.data:
            raise StorageError("Failed to save settings")

        logger.info(f"✅ API settings {'updated' if existing else 'created'}")
        return ApiSettings(**response.data[0])

    def regenerate_verify_token(self) -> ApiSettings:
        """
        Replace the webhook verify token with a new random value

        Raises:
            NotFoundError: If settings have not been saved yet
            StorageError: If the write fails
        """
        existing = self._first_row("id")
        if not existing:
            raise NotFoundError("No settings found. Please save your API settings first.")

        try:
            response = self.supabase.table(TABLE) \
                .update({
                    "webhook_verify_token": generate_verify_token(),
                    "updated_at": utc_now_iso(),
                }) \
                .eq("id", existing["id"]) \
                .execute()
        except APIError as e:
            logger.error(f"Error regenerating verify token: {e.message}")
            raise StorageError("Failed to regenerate verify token")

        if not response.data:
            raise StorageError("Failed to regenerate verify token")

        logger.info("🔑 Webhook verify token regenerated")
        return ApiSettings(**response.data[0])


def get_settings_service(supabase) -> SettingsService:
    """
    Create a SettingsService for the request's Supabase client

    Args:
        supabase: Supabase client instance

    Returns:
        SettingsService instance
    """
    return SettingsService(supabase)
