"""
Service-layer error taxonomy.

Services raise these; the HTTP layer maps them to responses in one place
(see confportal.main). Every error carries the status code and a stable
machine-readable code.
"""

from typing import Optional


class PortalError(Exception):
    """Base class for all expected service failures."""

    status_code: int = 500
    code: str = "internal"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PortalError):
    """Malformed or missing input. Nothing was written."""

    status_code = 400
    code = "validation"
    default_message = "Invalid request"


class AuthorizationError(PortalError):
    """Caller is not the owner or not an admin. The reason is not disclosed."""

    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class NotFoundError(PortalError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ConflictError(PortalError):
    """Operation is not valid in the record's current state. State unchanged."""

    status_code = 409
    code = "conflict"
    default_message = "Operation not allowed in the current state"


class IntegrityViolation(PortalError):
    """
    A gateway callback failed signature or amount verification.

    Never rendered as JSON: the callback handler turns it into a failure
    redirect carrying ``reason``.
    """

    status_code = 400
    code = "integrity"
    default_message = "Callback verification failed"

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message)


class InternalError(PortalError):
    """Unexpected collaborator failure. Detail is logged, not returned."""


class GatewayError(InternalError):
    code = "gateway_error"
    default_message = "Failed to initiate payment with gateway"


class StorageError(InternalError):
    code = "storage_error"
    default_message = "File upload failed"
