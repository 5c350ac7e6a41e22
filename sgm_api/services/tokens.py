"""
Stateless access/refresh tokens (JWT, HMAC-SHA-512).

Tokens are never stored. An access token is honoured only while its signature
and expiry are valid and the referenced account is still active and not locked.
Expired tokens and bad tokens raise different errors: clients refresh on the
former and re-login on the latter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List

from jose import ExpiredSignatureError, JWTError, jwt

from sgm_api.core.errors import AccountLocked, AccountNotActivated, ExpiredCredentials, InvalidToken
from sgm_api.core.security import SigningKey
from sgm_api.core.settings import AppSettings
from sgm_api.services.attempts import AttemptTracker
from sgm_api.services.timeutils import Clock, utcnow

logger = logging.getLogger(__name__)

AUTHORITIES_KEY = "auth"
TOKEN_TYPE_KEY = "type"
ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class Principal:
    """Authenticated subject resolved from a verified access token."""
    subject: str
    authorities: List[str] = field(default_factory=list)

    def has_any(self, *authorities: str) -> bool:
        return not set(self.authorities).isdisjoint(authorities)


def _split_authorities(raw: Any) -> List[str]:
    if not raw:
        return []
    return [a for a in str(raw).split(",") if a]


class TokenService:
    """Issue and verify signed tokens; re-check live account state on verification."""

    def __init__(
        self,
        key: SigningKey,
        store,
        attempts: AttemptTracker,
        access_ttl: timedelta = timedelta(minutes=30),
        refresh_ttl: timedelta = timedelta(days=1),
        clock: Clock = utcnow,
    ) -> None:
        self.key = key
        self.store = store
        self.attempts = attempts
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.clock = clock

    @classmethod
    def from_settings(
        cls, key: SigningKey, store, attempts: AttemptTracker, settings: AppSettings, clock: Clock = utcnow
    ) -> "TokenService":
        return cls(
            key,
            store,
            attempts,
            access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES),
            clock=clock,
        )

    def _encode(self, claims: Dict[str, Any], ttl: timedelta) -> str:
        now: datetime = self.clock()
        payload = dict(claims)
        payload.update({"iat": now, "exp": now + ttl})
        return jwt.encode(payload, self.key.secret, algorithm=self.key.algorithm)

    # PUBLIC_INTERFACE
    def issue_access_token(self, subject: str, authorities: Iterable[str]) -> str:
        """Access token carrying the subject and its comma-joined authorities."""
        return self._encode(
            {"sub": subject, AUTHORITIES_KEY: ",".join(authorities), TOKEN_TYPE_KEY: ACCESS},
            self.access_ttl,
        )

    # PUBLIC_INTERFACE
    def issue_refresh_token(self, subject: str) -> str:
        """Refresh token carrying the subject only."""
        return self._encode({"sub": subject, TOKEN_TYPE_KEY: REFRESH}, self.refresh_ttl)

    # PUBLIC_INTERFACE
    def parse_claims(self, token: str) -> Dict[str, Any]:
        """Verify signature and expiry, then return the claims."""
        if not token:
            raise InvalidToken()
        try:
            claims = jwt.decode(token, self.key.secret, algorithms=[self.key.algorithm])
        except ExpiredSignatureError as exc:
            raise ExpiredCredentials() from exc
        except JWTError as exc:
            raise InvalidToken() from exc
        if not claims.get("sub"):
            raise InvalidToken()
        return claims

    def _parse_typed(self, token: str, expected: str) -> Dict[str, Any]:
        claims = self.parse_claims(token)
        if claims.get(TOKEN_TYPE_KEY) != expected:
            raise InvalidToken()
        return claims

    async def _load_active_account(self, subject: str):
        account = await self.store.find_by_username(subject)
        if account is None:
            raise InvalidToken()
        if not account.is_active:
            raise AccountNotActivated()
        return account

    # PUBLIC_INTERFACE
    async def issue_access_token_from_refresh(self, refresh_token: str) -> str:
        """
        Mint a new access token from a valid refresh token. Authorities are
        resolved from the store, never from the refresh token.
        """
        claims = self._parse_typed(refresh_token, REFRESH)
        account = await self._load_active_account(claims["sub"])
        if self.attempts.lock_in_effect(account, self.clock()):
            raise AccountLocked()
        authorities = await self.store.list_authorities(account.id)
        return self.issue_access_token(account.username, authorities)

    # PUBLIC_INTERFACE
    async def verify_access_token(self, token: str) -> Principal:
        """Verify an access token and re-check the referenced account's live state."""
        claims = self._parse_typed(token, ACCESS)
        account = await self._load_active_account(claims["sub"])
        if self.attempts.lock_in_effect(account, self.clock()):
            raise AccountLocked()
        authorities = await self.store.list_authorities(account.id)
        token_authorities = _split_authorities(claims.get(AUTHORITIES_KEY))
        if set(token_authorities) - set(authorities):
            logger.info("Token for %s carries authorities no longer granted", account.username)
        return Principal(subject=account.username, authorities=sorted(set(token_authorities) & set(authorities)))
