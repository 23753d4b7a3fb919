"""
Statistics API Endpoints
"""
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query, status
from supabase import Client
import logging

from whatsapp_console.api.errors import http_error
from whatsapp_console.exceptions import ConsoleError, ValidationError
from whatsapp_console.models.stats import StatsHistoryResponse
from whatsapp_console.services.database import get_supabase_client
from whatsapp_console.services.stats_service import StatsService, get_stats_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stats", tags=["stats"])


def stats_service_dependency(supabase: Client = Depends(get_supabase_client)) -> StatsService:
    return get_stats_service(supabase)


@router.get(
    "",
    summary="Get message statistics",
    description=(
        "With `date`: one day (stored rollup, or computed live with calculated=true). "
        "With `startDate` and `endDate`: sums of stored rollups. Without parameters: all-time overview."
    )
)
async def get_stats(
    date: Optional[str] = Query(None, description="Day (YYYY-MM-DD)"),
    start_date: Optional[str] = Query(None, alias="startDate", description="Range start (YYYY-MM-DD)"),
    end_date: Optional[str] = Query(None, alias="endDate", description="Range end (YYYY-MM-DD), inclusive"),
    service: StatsService = Depends(stats_service_dependency)
):
    try:
        if date:
            return service.get_day(date)

        if start_date or end_date:
            if not (start_date and end_date):
                raise ValidationError("Both startDate and endDate are required")
            return service.get_range(start_date, end_date)

        return service.get_overview()

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error fetching statistics: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch statistics: {str(e)}"
        )


@router.get(
    "/history",
    response_model=StatsHistoryResponse,
    summary="Get daily statistics history"
)
async def get_stats_history(
    limit: int = Query(30, ge=1, le=366, description="Number of days to return"),
    service: StatsService = Depends(stats_service_dependency)
):
    try:
        history = service.get_history(limit=limit)
        return StatsHistoryResponse(success=True, history=history, count=len(history))

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error fetching statistics history: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch statistics history: {str(e)}"
        )
