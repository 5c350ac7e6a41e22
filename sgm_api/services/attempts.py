"""
Login-attempt throttling.

Per-account state machine: OK (no recent failures), WARN (failures below the
threshold) and LOCKED. Lock expiry is evaluated lazily when a login is attempted;
there is no background sweep. Privileged accounts never accumulate attempts and
are never locked.
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta

from sgm_api.core.errors import AccountLocked, EditForbidden
from sgm_api.core.settings import AppSettings
from sgm_api.services.timeutils import Clock, as_utc, utcnow

logger = logging.getLogger(__name__)


class AttemptState(str, enum.Enum):
    OK = "OK"
    WARN = "WARN"
    LOCKED = "LOCKED"


class AttemptTracker:
    """
    Failed-login counter and lock transitions.

    `store` must provide `apply(account_id, mutate)`, which re-runs `mutate` on
    fresh state when a concurrent writer wins (see AccountRepository.apply).
    """

    def __init__(self, store, threshold: int = 5, window: timedelta = timedelta(seconds=3600), clock: Clock = utcnow) -> None:
        self.store = store
        self.threshold = threshold
        self.window = window
        self.clock = clock

    @classmethod
    def from_settings(cls, store, settings: AppSettings, clock: Clock = utcnow) -> "AttemptTracker":
        return cls(
            store,
            threshold=settings.LOGON_ATTEMPTS,
            window=timedelta(seconds=settings.LOGON_ATTEMPT_WINDOW_SECONDS),
            clock=clock,
        )

    def _window_elapsed(self, account, now: datetime) -> bool:
        last = as_utc(account.last_failed_attempt_at)
        return last is None or last < now - self.window

    def _lock_expired(self, account, now: datetime) -> bool:
        # Administrative locks carry no failure timestamp and never expire.
        last = as_utc(account.last_failed_attempt_at)
        return last is not None and last < now - self.window

    def state(self, account) -> AttemptState:
        if account.is_locked:
            return AttemptState.LOCKED
        if account.failed_attempt_count > 0:
            return AttemptState.WARN
        return AttemptState.OK

    def lock_in_effect(self, account, now: datetime | None = None) -> bool:
        """True while a throttling lock is inside its window, or an administrative lock is set. Read-only."""
        return bool(account.is_locked) and not self._lock_expired(account, now or self.clock())

    # Pure transitions, applied through the store so they can be retried on conflict.

    def _unlock_if_expired(self, account, now: datetime) -> bool:
        if account.is_locked and self._lock_expired(account, now):
            account.is_locked = False
            return True
        return False

    def _record_failure(self, account, now: datetime) -> bool:
        if self._window_elapsed(account, now):
            account.failed_attempt_count = 1
        else:
            account.failed_attempt_count += 1
        account.last_failed_attempt_at = now
        if not account.is_locked and account.failed_attempt_count >= self.threshold:
            account.is_locked = True
            return True
        return False

    def _reset(self, account) -> None:
        account.failed_attempt_count = 0
        account.last_failed_attempt_at = None

    def _toggle(self, account) -> bool:
        # Clearing the failure timestamp makes a manual lock indefinite.
        if account.is_super_user:
            raise EditForbidden("error.editSuperEntity", "user")
        account.is_locked = not account.is_locked
        self._reset(account)
        return account.is_locked

    # PUBLIC_INTERFACE
    async def ensure_unlocked(self, account) -> None:
        """
        Unlock check run before credential verification.

        Auto-unlocks when the attempt window has elapsed since the last failure;
        otherwise raises AccountLocked. No-op on an unlocked account.
        """
        if not account.is_locked:
            return
        now = self.clock()
        if not self._lock_expired(account, now):
            raise AccountLocked()
        unlocked = await self.store.apply(account.id, lambda a: self._unlock_if_expired(a, now))
        if unlocked:
            logger.info("Account %s automatically unlocked after the attempt window elapsed", account.username)
        elif account.is_locked:
            # A concurrent failure re-locked it between the read and the write.
            raise AccountLocked()

    # PUBLIC_INTERFACE
    async def register_failure(self, account) -> bool:
        """
        Record a failed authentication. Returns True only when this call caused
        the transition to LOCKED. Privileged accounts are exempt.
        """
        if account.is_super_user:
            return False
        now = self.clock()
        locked_now = await self.store.apply(account.id, lambda a: self._record_failure(a, now))
        if locked_now:
            logger.warning(
                "Account %s locked after %d failed attempts", account.username, account.failed_attempt_count
            )
        else:
            logger.info(
                "Failed login for %s (%d/%d)", account.username, account.failed_attempt_count, self.threshold
            )
        return locked_now

    # PUBLIC_INTERFACE
    async def register_success(self, account) -> None:
        """Reset the counter after a successful authentication."""
        if account.is_super_user or account.failed_attempt_count <= 0:
            return
        await self.store.apply(account.id, self._reset)

    # PUBLIC_INTERFACE
    async def toggle_lock(self, account) -> bool:
        """Administrative lock flip. Returns the new lock state."""
        if account.is_super_user:
            raise EditForbidden("error.editSuperEntity", "user")
        locked = await self.store.apply(account.id, self._toggle)
        logger.info("Account %s %s by administrator", account.username, "locked" if locked else "unlocked")
        return locked
