"""
Domain errors raised by the service layer.

Each error carries the HTTP status it maps to; the exception handler in
main.py renders them as ``{"error": message, "code": code}``.
"""

from fastapi import status


class ServiceError(Exception):
    """Base class for expected, user-facing failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Bad or missing input (malformed email, unknown action, ...)."""

    code = "validation_error"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class Expired(ServiceError):
    """Invitation is past its expires_at."""

    code = "expired"


class Forbidden(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class TeamFull(ServiceError):
    """No free slot left on the manager's team."""

    code = "team_full"


class Conflict(ServiceError):
    """Duplicate pending invitation or existing membership."""

    code = "conflict"


class EmailDeliveryError(ServiceError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "email_delivery_failed"


class RateLimited(ServiceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"
