"""
Cron Authentication Middleware
Validates scheduler requests using the CRON_SECRET Bearer token
"""
from fastapi import Request, HTTPException, status
import logging

from whatsapp_console.config import settings
from whatsapp_console.exceptions import UnauthorizedError
from whatsapp_console.services.maintenance_service import verify_cron_secret

logger = logging.getLogger(__name__)


async def require_cron_secret(request: Request) -> bool:
    """
    Validate a cron request using the Authorization header.

    Expects `Authorization: Bearer <CRON_SECRET>`. Runs as a route
    dependency, so a rejected request never reaches storage.

    Usage in FastAPI endpoints:
        @router.get("/cron/...")
        async def cron_endpoint(
            authorized: bool = Depends(require_cron_secret),
            ...
        ):

    Args:
        request: FastAPI Request object

    Returns:
        True if valid

    Raises:
        HTTPException: 401 if the secret is unset, missing or invalid
    """
    client_host = request.client.host if request.client else "unknown"

    try:
        verify_cron_secret(request.headers.get("Authorization"), settings.CRON_SECRET)
    except UnauthorizedError as e:
        logger.warning(f"Unauthorized cron request from {client_host}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.to_detail()
        )

    logger.debug(f"✅ Cron request authenticated from {client_host}")
    return True
