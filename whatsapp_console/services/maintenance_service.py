"""
Maintenance Service
Scheduled cleanup of expired uploaded media records
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from postgrest.exceptions import APIError

from whatsapp_console.config import settings as app_settings
from whatsapp_console.exceptions import StorageError, UnauthorizedError
from whatsapp_console.utils.timestamps import utc_now

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def verify_cron_secret(authorization: Optional[str], expected_secret: Optional[str]) -> None:
    """
    Check an Authorization header against the cron shared secret

    An unset secret rejects every request.

    Raises:
        UnauthorizedError: If the header is missing, malformed or does not match
    """
    if not expected_secret:
        logger.error("CRON_SECRET is not configured, rejecting cron request")
        raise UnauthorizedError()

    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise UnauthorizedError()

    provided = authorization[len(BEARER_PREFIX):]
    if not secrets.compare_digest(provided.encode("utf-8"), expected_secret.encode("utf-8")):
        logger.warning("Invalid cron secret provided")
        raise UnauthorizedError()


class MaintenanceService:
    """Service for periodic storage cleanup"""

    def __init__(self, supabase, retention_days: Optional[int] = None):
        """
        Initialize Maintenance Service

        Args:
            supabase: Supabase client instance
            retention_days: Days uploaded media is kept (default: from settings)
        """
        self.supabase = supabase
        self.retention_days = retention_days or app_settings.MEDIA_RETENTION_DAYS

    def cleanup_expired_media(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Delete uploaded media records older than the retention window

        Runs as a single delete statement.

        Args:
            now: Reference time (default: current UTC time)

        Returns:
            Dictionary with deleted_count and the cutoff used

        Raises:
            StorageError: If the delete fails
        """
        cutoff = (now or utc_now()) - timedelta(days=self.retention_days)
        logger.info(f"🧹 Deleting uploaded media created before {cutoff.isoformat()}")

        try:
            response = self.supabase.table("uploaded_media") \
                .delete() \
                .lt("created_at", cutoff.isoformat()) \
                .execute()
        except APIError as e:
            logger.error(f"Error cleaning up expired media: {e.message}")
            raise StorageError("Failed to delete expired media")

        deleted_count = len(response.data or [])
        logger.info(f"✅ Expired media cleanup finished: {deleted_count} deleted")

        return {"deleted_count": deleted_count, "cutoff": cutoff.isoformat()}


def get_maintenance_service(supabase) -> MaintenanceService:
    return MaintenanceService(supabase)
