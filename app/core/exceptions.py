"""
Custom exceptions for the Mini App Auth Backend.
Provides structured error handling for init data validation and profile storage.
"""

from typing import Any, Dict, Optional

from fastapi import status


class MiniAppAuthException(Exception):
    """Base exception for Mini App Auth Backend application."""

    def __init__(
        self,
        message: str,
        error_code: str = "MINIAPP_AUTH_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def error(self) -> str:
        """Short machine-readable error value returned to callers."""
        return self.error_code


# Input errors
class MissingInitDataError(MiniAppAuthException):
    """Raised when the request carries no init data."""

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__("Missing initData", "MISSING_INIT_DATA", details)


class InitDataVerificationError(MiniAppAuthException):
    """Raised when the init data verdict is invalid."""

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None):
        self.reason = reason
        super().__init__("Invalid or expired initData", "INIT_DATA_INVALID", details)

    @property
    def error(self) -> str:
        return self.reason


class OriginNotAllowedError(MiniAppAuthException):
    """Raised when a request comes from an origin outside the CORS whitelist."""

    def __init__(self, origin: str, details: Optional[Dict[str, Any]] = None):
        self.origin = origin
        super().__init__("Origin not allowed by CORS policy.", "ORIGIN_NOT_ALLOWED", details)


# Configuration
class ConfigurationError(MiniAppAuthException):
    """Raised when required server configuration is missing."""

    def __init__(self, message: str = "Server configuration error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


# Database Operations
class DatabaseError(MiniAppAuthException):
    """Raised when database operations fail."""

    def __init__(self, message: str = "Database operation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "DATABASE_ERROR", details)


class UserAlreadyExistsError(MiniAppAuthException):
    """Raised when inserting a user profile whose user ID is already stored."""

    def __init__(self, user_id: str, details: Optional[Dict[str, Any]] = None):
        self.user_id = user_id
        message = f"User already exists: {user_id}"
        super().__init__(message, "USER_ALREADY_EXISTS", details)


class ReferralCodeConflictError(MiniAppAuthException):
    """Raised when a generated referral code is already taken."""

    def __init__(self, referral_code: str, details: Optional[Dict[str, Any]] = None):
        self.referral_code = referral_code
        message = f"Referral code already taken: {referral_code}"
        super().__init__(message, "REFERRAL_CODE_CONFLICT", details)


class ReferralCodeGenerationError(DatabaseError):
    """Raised when no unique referral code could be stored."""

    def __init__(self, attempts: int, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Could not allocate a unique referral code after {attempts} attempts",
            details,
        )
        self.error_code = "REFERRAL_CODE_EXHAUSTED"


def get_exception_status_code(exc: MiniAppAuthException) -> int:
    """
    Get the appropriate HTTP status code for a MiniAppAuthException.

    Args:
        exc: MiniAppAuthException instance

    Returns:
        int: HTTP status code
    """
    status_mapping = {
        # Input
        "MISSING_INIT_DATA": status.HTTP_400_BAD_REQUEST,
        "INIT_DATA_INVALID": status.HTTP_401_UNAUTHORIZED,
        "ORIGIN_NOT_ALLOWED": status.HTTP_403_FORBIDDEN,

        # Configuration
        "CONFIGURATION_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,

        # Database Operations
        "DATABASE_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "USER_ALREADY_EXISTS": status.HTTP_409_CONFLICT,
        "REFERRAL_CODE_CONFLICT": status.HTTP_409_CONFLICT,
        "REFERRAL_CODE_EXHAUSTED": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }

    return status_mapping.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


def build_error_content(exc: MiniAppAuthException) -> Dict[str, Any]:
    """
    Build the JSON body for an error response.

    Server-side failures get a generic message; internal details stay in the logs.

    Args:
        exc: MiniAppAuthException instance

    Returns:
        Dict[str, Any]: Response body with message and error fields
    """
    status_code = get_exception_status_code(exc)
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        if isinstance(exc, ConfigurationError):
            return {"message": "Server configuration error", "error": exc.error_code}
        return {
            "message": "Internal server error interacting with database.",
            "error": exc.error_code,
        }
    return {"message": exc.message, "error": exc.error}
