import logging
from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from whatsapp_console.api.errors import http_error
from whatsapp_console.exceptions import ConsoleError
from whatsapp_console.middleware.cron_auth import require_cron_secret
from whatsapp_console.services.database import get_supabase_client
from whatsapp_console.services.maintenance_service import MaintenanceService, get_maintenance_service
from whatsapp_console.services.scheduled_message_service import ScheduledMessageService, get_scheduled_message_service
from whatsapp_console.services.stats_service import StatsService, get_stats_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Jobs"])


def maintenance_service_dependency(supabase: Client = Depends(get_supabase_client)) -> MaintenanceService:
    return get_maintenance_service(supabase)


def stats_service_dependency(supabase: Client = Depends(get_supabase_client)) -> StatsService:
    return get_stats_service(supabase)


def scheduled_service_dependency(supabase: Client = Depends(get_supabase_client)) -> ScheduledMessageService:
    return get_scheduled_message_service(supabase)


# The secret check is listed first so an unauthorized call never opens a datastore client
@router.get("/cleanup-expired-media")
async def cleanup_expired_media(
    authorized: bool = Depends(require_cron_secret),
    service: MaintenanceService = Depends(maintenance_service_dependency)
):
    """Cron job endpoint to delete uploaded media older than the retention window."""

    logger.info("Expired media cleanup job started")

    try:
        result = service.cleanup_expired_media()
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Expired media cleanup failed: {e}")
        raise HTTPException(status_code=500, detail=f"Cleanup failed: {str(e)}")

    return {
        "success": True,
        "message": f"Deleted {result['deleted_count']} expired media records",
        "deleted_count": result["deleted_count"],
        "cutoff": result["cutoff"]
    }


@router.get("/calculate-daily-stats")
async def calculate_daily_stats(
    authorized: bool = Depends(require_cron_secret),
    service: StatsService = Depends(stats_service_dependency)
):
    """Cron job endpoint to roll yesterday's message statistics into daily_statistics."""

    logger.info("Daily statistics job started")

    try:
        return service.calculate_daily_stats()
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Daily statistics job failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to calculate daily stats: {str(e)}")


@router.get("/process-scheduled-messages")
async def process_scheduled_messages(
    authorized: bool = Depends(require_cron_secret),
    service: ScheduledMessageService = Depends(scheduled_service_dependency)
):
    """Cron job endpoint to deliver scheduled messages whose time has come."""

    logger.info("Scheduled message job started")

    try:
        return await service.process_due()
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Scheduled message job failed: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to process scheduled messages: {str(e)}")
