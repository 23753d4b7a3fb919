"""
Service Exceptions
Error taxonomy shared by services and translated to HTTP responses by the routers
"""
from typing import Any, Dict, Optional


class ConsoleError(Exception):
    """Base exception for service errors"""

    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_detail(self) -> Dict[str, Any]:
        return {"error": self.message, "success": False}


class ValidationError(ConsoleError):
    """Missing or malformed input"""

    status_code = 400


class ConfigurationError(ConsoleError):
    """WhatsApp API credentials are not configured"""

    status_code = 500

    def __init__(self, message: str = "API settings not configured"):
        super().__init__(message)


class NotFoundError(ConsoleError):
    """Requested record does not exist"""

    status_code = 404


class UnauthorizedError(ConsoleError):
    """Shared secret mismatch"""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class StorageError(ConsoleError):
    """Datastore failure"""

    status_code = 500


class ExternalApiError(ConsoleError):
    """Non-success response from the WhatsApp Graph API"""

    error_type: Optional[str] = None

    def __init__(
        self,
        message: str,
        status_code: int = 502,
        code: Optional[int] = None,
        subcode: Optional[int] = None,
    ):
        super().__init__(message)
        # Provider status is passed through verbatim
        self.status_code = status_code
        self.code = code
        self.subcode = subcode

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        if self.error_type:
            detail["errorType"] = self.error_type
        if self.code is not None:
            detail["errorCode"] = self.code
        return detail


class TokenExpiredError(ExternalApiError):
    """
    Access token expired or revoked (Graph API code 190 / OAuthException)

    `errorType: TOKEN_EXPIRED` marks the body; the HTTP status stays the
    provider's. 401 is used only when the provider reported no error status.
    """

    error_type = "TOKEN_EXPIRED"

    def __init__(
        self,
        message: str = "Access token has expired",
        status_code: int = 401,
        code: Optional[int] = 190,
        subcode: Optional[int] = None,
    ):
        super().__init__(message, status_code=status_code, code=code, subcode=subcode)


class ForbiddenError(ConsoleError):
    """Webhook verification token mismatch"""

    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)
