"""
Service error taxonomy.

Every error raised by the credential services carries a message key (resolved to
text by sgm_api.core.messages.translate at the HTTP boundary), optional format
arguments, and the HTTP status the boundary should answer with.
"""

from __future__ import annotations

from typing import Any, ClassVar


class ServiceError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: ClassVar[int] = 400
    error_type: ClassVar[str] = "business_error"
    default_key: ClassVar[str] = "error.validation"

    def __init__(self, message_key: str | None = None, *args: Any) -> None:
        self.message_key = message_key or self.default_key
        self.args_for_message = args
        super().__init__(self.message_key)


class InvalidToken(ServiceError):
    """Malformed token or signature mismatch."""
    status_code = 401
    error_type = "invalid_token"
    default_key = "error.session.invalidToken"


class ExpiredCredentials(ServiceError):
    """Token signature is valid but the token is past its expiry."""
    status_code = 403
    error_type = "expired_credentials"
    default_key = "error.session.expired"


class AccountNotActivated(ServiceError):
    status_code = 401
    error_type = "account_not_activated"
    default_key = "error.loginUserNotActivated"


class AccountLocked(ServiceError):
    status_code = 400
    error_type = "account_locked"
    default_key = "error.loginUserIsBlocked"


class AttemptsExceeded(ServiceError):
    """Raised on the failed attempt that causes the lock transition."""
    status_code = 400
    error_type = "attempts_exceeded"
    default_key = "error.password.logonAttemptsExceeded"


class Unauthorized(ServiceError):
    """Bad credentials or unknown username; both look the same to clients."""
    status_code = 401
    error_type = "unauthorized"
    default_key = "error.badCredentials"


class WeakPassword(ServiceError):
    error_type = "weak_password"
    default_key = "error.password.notContains"


class PasswordReused(ServiceError):
    error_type = "password_reused"
    default_key = "error.password.equalsOld"


class PasswordMismatch(ServiceError):
    error_type = "password_mismatch"
    default_key = "error.password.notEqual"


class RequiredField(ServiceError):
    error_type = "required_field"
    default_key = "error.required"


class EditForbidden(ServiceError):
    """Administrative mutation attempted on a privileged account."""
    status_code = 403
    error_type = "edit_forbidden"
    default_key = "error.editSuperEntity"


class Forbidden(ServiceError):
    status_code = 403
    error_type = "forbidden"
    default_key = "error.accessDenied"


class NotFound(ServiceError):
    status_code = 404
    error_type = "not_found"
    default_key = "error.globalNotFound"


class FieldConflict(ServiceError):
    status_code = 409
    error_type = "field_conflict"
    default_key = "error.conflictField"


class ConcurrencyFailure(ServiceError):
    """Optimistic concurrency retries were exhausted."""
    status_code = 409
    error_type = "concurrency_failure"
    default_key = "error.concurrencyFailure"
