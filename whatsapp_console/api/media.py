"""
Uploaded Media API Endpoints
"""
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query, status
from supabase import Client
import logging

from whatsapp_console.api.errors import http_error
from whatsapp_console.exceptions import ConsoleError
from whatsapp_console.services.database import get_supabase_client
from whatsapp_console.services.media_service import MediaService, get_media_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploaded-media", tags=["media"])


def media_service_dependency(supabase: Client = Depends(get_supabase_client)) -> MediaService:
    return get_media_service(supabase)


@router.get("", summary="List uploaded media")
async def list_uploaded_media(
    limit: int = Query(50, ge=1, le=500, description="Maximum records to return"),
    service: MediaService = Depends(media_service_dependency)
):
    try:
        result = service.list_uploaded(limit=limit)
        return {"success": True, **result}

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error listing uploaded media: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch media: {str(e)}"
        )


@router.delete("", summary="Delete uploaded media")
async def delete_uploaded_media(
    id: Optional[str] = Query(None, description="uploaded_media row ID"),
    service: MediaService = Depends(media_service_dependency)
):
    try:
        service.delete_uploaded(id)
        return {"success": True}

    except HTTPException:
        raise
    except ConsoleError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error deleting uploaded media {id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete media: {str(e)}"
        )
