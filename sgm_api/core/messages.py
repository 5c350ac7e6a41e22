"""
Message catalog for user-facing error text.

Services raise errors carrying keys; the HTTP layer resolves them here. Unknown
keys resolve to themselves so a missing entry never hides an error.
"""

from __future__ import annotations

from typing import Any, Dict

MESSAGES: Dict[str, str] = {
    # General
    "error.validation": "Request validation failed.",
    "error.concurrencyFailure": "The record was modified concurrently. Please try again.",
    "error.globalNotFound": "The requested %s was not found.",
    "error.accessDenied": "Access denied.",
    "error.editSuperEntity": "Access denied! You cannot edit that %s.",
    "error.conflictField": "There is already a %s using this %s.",
    "error.required": "The field %s is required.",
    # Authentication
    "error.badCredentials": "Invalid username or password.",
    "error.loginUserIsBlocked": "User is blocked. Try again later or contact an administrator.",
    "error.loginUserNotActivated": "User is not activated.",
    "error.password.logonAttemptsExceeded": "Logon attempts exceeded. The user has been blocked.",
    "error.session.expired": "Your session has expired.",
    "error.session.invalidToken": "Invalid token.",
    # Password rules
    "error.password.tooShort": "The password must have at least %s characters.",
    "error.password.notContains": (
        "The password must contain numbers, lower case letters, upper case letters "
        "and special characters."
    ),
    "error.password.equalsOld": "The new password must be different from the previous passwords of this %s.",
    "error.password.notEqual": "The password and its confirmation do not match.",
    # Entities and fields
    "user": "user",
    "role": "role",
    "field.password": "password",
    "field.username": "username",
}


# PUBLIC_INTERFACE
def translate(key: str, *args: Any) -> str:
    """Resolve a message key and apply %-style arguments (themselves translated when they are keys)."""
    template = MESSAGES.get(key, key)
    if not args:
        return template
    resolved = tuple(MESSAGES.get(a, a) if isinstance(a, str) else a for a in args)
    try:
        return template % resolved
    except (TypeError, ValueError):
        return template
