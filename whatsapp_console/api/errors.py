"""
Error translation for route handlers
"""
from fastapi import HTTPException

from whatsapp_console.exceptions import ConsoleError


def http_error(error: ConsoleError) -> HTTPException:
    """Convert a service exception into an HTTPException with its status and body"""
    return HTTPException(status_code=error.status_code, detail=error.to_detail())
