"""
Custom exceptions for the Splittat domain.

These exceptions represent domain-level errors and are independent
of infrastructure concerns. The API layer maps each class onto an
HTTP status code.
"""

from typing import Any, Dict, List, Optional


class SplittatError(Exception):
    """Base exception for all Splittat domain errors."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationFailed(SplittatError):
    """Raised when user input breaks a domain rule."""

    status_code = 400
    code = "validation_error"

    def __init__(
        self,
        message: str,
        errors: Optional[Dict[str, List[str]]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.errors = errors or {}
        super().__init__(message, details)


class AllocationError(ValidationFailed):
    """Raised when split instructions cannot be allocated consistently."""

    code = "allocation_error"

    def __init__(self, message: str, item_id: Optional[str] = None):
        details = {"item_id": item_id} if item_id else None
        super().__init__(message, details=details)
        self.item_id = item_id


class AuthenticationFailed(SplittatError):
    """Raised when a bearer token is missing, invalid or expired."""

    status_code = 401
    code = "unauthorized"


class PermissionDenied(SplittatError):
    """Raised when the caller may not act on a resource."""

    status_code = 403
    code = "forbidden"


class NotFound(SplittatError):
    """Raised when a resource does not exist or is not visible to the caller."""

    status_code = 404
    code = "not_found"

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        message = f"{resource} not found"
        super().__init__(
            message=message, details={"resource": resource, "id": resource_id}
        )
        self.resource = resource
        self.resource_id = resource_id


class Conflict(SplittatError):
    """Raised when a request conflicts with the current resource state."""

    status_code = 409
    code = "conflict"
