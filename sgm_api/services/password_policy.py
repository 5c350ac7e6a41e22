"""
Password policy: complexity, reuse against a bounded history, confirmation.

Hashing is delegated to injected primitives (bcrypt via passlib by default), so
the policy never compares plaintext against stored values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Pattern, Sequence

from sgm_api.core.errors import PasswordMismatch, PasswordReused, RequiredField, WeakPassword
from sgm_api.core.security import get_password_hash, verify_password
from sgm_api.core.settings import AppSettings
from sgm_api.services.timeutils import as_utc


def _compile(patterns: Sequence[str]) -> List[Pattern[str]]:
    return [re.compile(p) for p in patterns]


@dataclass
class PasswordPolicy:
    """Password rules. Every character-class predicate is mandatory."""

    min_length: int = 7
    history_limit: int = 24
    max_age: timedelta = timedelta(days=90)
    class_patterns: Sequence[str] = (r"[0-9]", r"[a-z]", r"[A-Z]", r"[^a-zA-Z0-9]")
    hash: Callable[[str], str] = get_password_hash
    verify_hash: Callable[[str, str], bool] = verify_password
    _compiled: List[Pattern[str]] = field(init=False, repr=False, default_factory=list)

    def __post_init__(self) -> None:
        self._compiled = _compile(self.class_patterns)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "PasswordPolicy":
        return cls(
            min_length=settings.PASSWORD_MIN_LENGTH,
            history_limit=settings.PASSWORD_HISTORY_LIMIT,
            max_age=timedelta(days=settings.PASSWORD_MAX_AGE_DAYS),
            class_patterns=(
                settings.PASSWORD_REGEX_NUMBER,
                settings.PASSWORD_REGEX_LOWERCASE,
                settings.PASSWORD_REGEX_UPPERCASE,
                settings.PASSWORD_REGEX_NON_ALPHANUMERIC,
            ),
        )

    # PUBLIC_INTERFACE
    def validate_required(self, password: Optional[str]) -> None:
        """Reject a missing password (account creation only)."""
        if not password:
            raise RequiredField("error.required", "field.password")

    # PUBLIC_INTERFACE
    def validate_complexity(self, password: str) -> None:
        """Require min_length characters and at least one match of every class predicate."""
        if len(password) < self.min_length:
            raise WeakPassword("error.password.tooShort", self.min_length)
        if not all(p.search(password) for p in self._compiled):
            raise WeakPassword("error.password.notContains")

    # PUBLIC_INTERFACE
    def validate_not_reused(self, candidate: str, history: Sequence[str]) -> None:
        """Fail when the candidate verifies against any stored history hash."""
        for old_hash in history:
            if self.verify_hash(candidate, old_hash):
                raise PasswordReused("error.password.equalsOld", "user")

    # PUBLIC_INTERFACE
    def validate_confirmation_match(self, password: Optional[str], confirmation: Optional[str]) -> None:
        """Case-insensitive equality of password and confirmation."""
        if password and password.lower() != (confirmation or "").lower():
            raise PasswordMismatch()

    # PUBLIC_INTERFACE
    def validate(
        self,
        password: Optional[str],
        confirmation: Optional[str],
        history: Sequence[str] = (),
        *,
        creating: bool = False,
    ) -> None:
        """
        Composite check in observable priority order:
        required (creation only) -> complexity -> reuse -> confirmation.
        """
        if creating:
            self.validate_required(password)
        password = password or ""
        self.validate_complexity(password)
        self.validate_not_reused(password, history)
        self.validate_confirmation_match(password, confirmation)

    # PUBLIC_INTERFACE
    def record_new_password(self, history: Sequence[str], new_hash: str, limit: Optional[int] = None) -> List[str]:
        """Append new_hash and evict oldest entries until the log holds at most `limit` hashes."""
        limit = self.history_limit if limit is None else limit
        updated = list(history) + [new_hash]
        if len(updated) > limit:
            updated = updated[len(updated) - limit:]
        return updated

    # PUBLIC_INTERFACE
    def password_expired(self, account, now: datetime) -> bool:
        """Forced-aging flag. Privileged accounts never expire."""
        if account.is_super_user:
            return False
        changed = as_utc(account.last_password_change_at)
        return changed is None or changed + self.max_age < now
