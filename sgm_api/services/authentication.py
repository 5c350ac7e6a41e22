"""
Authentication flows: login, token refresh and password change.

This is the only credential service the HTTP layer talks to directly; it
composes the attempt tracker, the password policy and the token service.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sgm_api.core.errors import AccountNotActivated, AttemptsExceeded, NotFound, Unauthorized
from sgm_api.core.security import SigningKey
from sgm_api.core.settings import AppSettings
from sgm_api.services.attempts import AttemptTracker
from sgm_api.services.password_policy import PasswordPolicy
from sgm_api.services.timeutils import Clock, utcnow
from sgm_api.services.tokens import TokenService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class AuthenticationService:
    """Orchestrates the credential lifecycle for a single account store."""

    def __init__(
        self,
        store,
        policy: PasswordPolicy,
        attempts: AttemptTracker,
        tokens: TokenService,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.policy = policy
        self.attempts = attempts
        self.tokens = tokens
        self.clock = clock

    @classmethod
    def build(cls, store, settings: AppSettings, key: SigningKey, clock: Clock = utcnow) -> "AuthenticationService":
        """Wire the default collaborators from settings."""
        policy = PasswordPolicy.from_settings(settings)
        attempts = AttemptTracker.from_settings(store, settings, clock=clock)
        tokens = TokenService.from_settings(key, store, attempts, settings, clock=clock)
        return cls(store, policy, attempts, tokens, clock=clock)

    # PUBLIC_INTERFACE
    async def login(self, username: str, password: str) -> TokenPair:
        """
        Authenticate and issue an access/refresh token pair.

        Unknown usernames and wrong passwords both raise Unauthorized; only known
        accounts accumulate failed attempts. The failure that locks the account
        raises AttemptsExceeded instead.
        """
        account = await self.store.find_by_username(username or "")
        if account is None:
            logger.info("Login rejected for unknown username")
            raise Unauthorized()

        await self.attempts.ensure_unlocked(account)
        if not account.is_active:
            raise AccountNotActivated()

        if not self.policy.verify_hash(password or "", account.password_hash):
            if await self.attempts.register_failure(account):
                raise AttemptsExceeded()
            raise Unauthorized()

        await self.attempts.register_success(account)
        now = self.clock()

        def _mark_login(a) -> None:
            a.last_login_at = now

        await self.store.apply(account.id, _mark_login)
        authorities = await self.store.list_authorities(account.id)
        logger.info("User %s authenticated", account.username)
        return TokenPair(
            access_token=self.tokens.issue_access_token(account.username, authorities),
            refresh_token=self.tokens.issue_refresh_token(account.username),
        )

    # PUBLIC_INTERFACE
    async def refresh(self, refresh_token: str) -> TokenPair:
        """New access token for a valid refresh token; the refresh token is echoed unchanged."""
        access = await self.tokens.issue_access_token_from_refresh(refresh_token)
        return TokenPair(access_token=access, refresh_token=refresh_token)

    # PUBLIC_INTERFACE
    async def change_password(self, account_id: UUID, new_password: str, confirmation: str):
        """
        Replace the account's password after policy validation
        (complexity -> reuse -> confirmation).

        On success the new hash joins the bounded history, attempt counters are
        cleared and last_password_change_at is stamped.
        """
        account = await self.store.get_by_id(account_id)
        if account is None:
            raise NotFound("error.globalNotFound", "user")

        self.policy.validate(new_password, confirmation, account.password_history)
        new_hash = self.policy.hash(new_password)
        now = self.clock()

        def _apply(a) -> None:
            a.password_hash = new_hash
            a.password_history = self.policy.record_new_password(a.password_history, new_hash)
            a.failed_attempt_count = 0
            a.last_failed_attempt_at = None
            a.last_password_change_at = now

        await self.store.apply(account.id, _apply)
        logger.info("Password changed for %s", account.username)
        return account
