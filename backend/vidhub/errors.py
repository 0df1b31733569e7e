"""
Service Errors

Typed failures raised by services and guards. The HTTP layer turns each one
into the failure envelope ``{status_code, message, errors, success}``; nothing
below the route layer catches them to continue.
"""

from typing import Any, List, Optional


class ServiceError(Exception):
    """Base exception for every failure a caller can observe"""

    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Any]] = None):
        self.message = message or self.default_message
        self.errors = list(errors or [])
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Malformed or missing input"""

    status_code = 400
    default_message = "Invalid input"


class AuthError(ServiceError):
    """Bad credentials or a missing/invalid/expired token"""

    status_code = 401
    default_message = "Unauthorized request"


class TokenReuseError(AuthError):
    """A refresh token that is no longer the stored one was presented"""

    default_message = "Refresh token has already been used; please log in again"


class ForbiddenError(ServiceError):
    status_code = 403
    default_message = "You are not allowed to modify this resource"


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ServiceError):
    status_code = 409
    default_message = "Resource already exists"


class UploadError(ServiceError):
    """Object storage collaborator failed"""

    status_code = 502
    default_message = "Error while uploading media"


class InternalError(ServiceError):
    status_code = 500
    default_message = "Internal server error"
