"""
Application exception hierarchy

Every error raised by the API layer derives from AppError and is rendered
as the standard JSON envelope by the handlers registered in main.py.
"""

from typing import Any, Dict, Optional

from fastapi import status


class AppError(Exception):
    """Base class for errors surfaced to API clients"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        # Underlying cause, only shown to clients in development
        self.detail = detail
        self.extra = extra or {}
        super().__init__(self.message)


# ============================================
# Request errors
# ============================================

class InputValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Resource already exists"


class RateLimitError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests from this IP, please try again later."


# ============================================
# Authentication / authorization errors
# ============================================

class AuthenticationError(AppError):
    """Rejected credential; `reason` names the rejection kind"""

    status_code = status.HTTP_401_UNAUTHORIZED
    reason = "AuthenticationFailed"


class MissingCredentialError(AuthenticationError):
    reason = "MissingCredential"
    default_message = "Access denied. No token provided."


class InvalidCredentialError(AuthenticationError):
    reason = "InvalidCredential"
    default_message = "Invalid token. Please login again."


class ExpiredCredentialError(AuthenticationError):
    reason = "ExpiredCredential"
    default_message = "Token has expired. Please login again."


class AuthInternalError(AuthenticationError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    reason = "AuthInternalError"
    default_message = "Authentication failed"


class UnauthenticatedError(AuthenticationError):
    reason = "Unauthenticated"
    default_message = "User not authenticated"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


# ============================================
# Gateway errors
# ============================================

class GatewayError(AppError):
    """Failure talking to the database"""


class DatabaseConnectionError(GatewayError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Service unavailable"


class ProcedureError(GatewayError):
    """
    A stored procedure raised an error.

    `message` is the driver's text, unmodified, so callers can classify it.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, procedure: Optional[str] = None):
        super().__init__(message, detail=message)
        self.procedure = procedure
