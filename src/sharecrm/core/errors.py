"""Domain exceptions shared by the core services.

Every error carries the HTTP status the web layer answers with, so route
handlers can let them propagate to the app-level exception handler.
"""

from __future__ import annotations


class CrmError(Exception):
    """Base exception for SHARE CRM business errors."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(CrmError):
    """Raised when input breaks a business or form rule."""

    status_code = 400


class NotFoundError(CrmError):
    """Raised when a referenced record does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class ConflictError(CrmError):
    """Raised when a write collides with existing state."""

    status_code = 409


class AuthenticationError(CrmError):
    """Raised when credentials or tokens are missing or invalid."""

    status_code = 401


class PermissionDeniedError(CrmError):
    """Raised when the caller lacks a required role or permission."""

    status_code = 403


class AccountBlockedError(CrmError):
    """Raised when a disabled or blocked account tries to authenticate."""

    status_code = 403

    def __init__(self, reason: str | None = None):
        self.reason = reason
        message = "Account is blocked"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class PaymentSignatureError(CrmError):
    """Raised when a payment webhook signature cannot be verified."""

    status_code = 400
