"""Client-visible error taxonomy.

Each class carries the HTTP status it maps to; ``main.py`` renders them into
the ``{"success": false, "message": ...}`` envelope.
"""
from typing import List, Optional


class ChopNowError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[dict]] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationFailed(ChopNowError):
    status_code = 400
    default_message = "Validation error"


class BusinessRuleError(ChopNowError):
    status_code = 400
    default_message = "Request violates a business rule"


class Unauthenticated(ChopNowError):
    status_code = 401
    default_message = "Authentication required"


class PermissionDenied(ChopNowError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFoundError(ChopNowError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ChopNowError):
    status_code = 409
    default_message = "Resource already exists"


class AccountLocked(ChopNowError):
    status_code = 423
    default_message = (
        "Account is temporarily locked due to multiple failed login attempts. "
        "Please try again later."
    )


class RateLimited(ChopNowError):
    status_code = 429
    default_message = "Too many authentication attempts. Please try again later."
