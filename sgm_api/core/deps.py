from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from sgm_api.core.errors import Forbidden, InvalidToken
from sgm_api.core.logging import bind_principal
from sgm_api.core.security import SigningKey, get_signing_key, resolve_bearer
from sgm_api.core.settings import AppSettings, get_app_settings
from sgm_api.db.session import get_async_session
from sgm_api.repositories.accounts import AccountRepository
from sgm_api.services.attempts import AttemptTracker
from sgm_api.services.authentication import AuthenticationService
from sgm_api.services.password_policy import PasswordPolicy
from sgm_api.services.tokens import Principal
from sgm_api.services.users import UserService

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
async def get_session(session: AsyncSession = Depends(get_async_session)) -> AsyncSession:
    """Request-scoped AsyncSession (closed by get_async_session when the request ends)."""
    return session


# PUBLIC_INTERFACE
def get_settings_dep() -> AppSettings:
    """Application settings; overridable in tests."""
    return get_app_settings()


# PUBLIC_INTERFACE
def get_key() -> SigningKey:
    """Process-wide signing key; overridable in tests."""
    return get_signing_key()


# PUBLIC_INTERFACE
async def get_account_repository(
    session: AsyncSession = Depends(get_session),
    settings: AppSettings = Depends(get_settings_dep),
) -> AccountRepository:
    return AccountRepository(session, max_retries=settings.ACCOUNT_UPDATE_MAX_RETRIES)


# PUBLIC_INTERFACE
async def get_auth_service(
    repo: AccountRepository = Depends(get_account_repository),
    settings: AppSettings = Depends(get_settings_dep),
    key: SigningKey = Depends(get_key),
) -> AuthenticationService:
    """Authentication service wired to the request's account repository."""
    return AuthenticationService.build(repo, settings, key)


# PUBLIC_INTERFACE
async def get_user_service(
    repo: AccountRepository = Depends(get_account_repository),
    settings: AppSettings = Depends(get_settings_dep),
) -> UserService:
    return UserService(
        repo,
        PasswordPolicy.from_settings(settings),
        AttemptTracker.from_settings(repo, settings),
    )


# PUBLIC_INTERFACE
async def get_current_principal(
    authorization: Optional[str] = Header(default=None),
    auth: AuthenticationService = Depends(get_auth_service),
) -> Principal:
    """
    Resolve the principal from the Authorization bearer token.

    The token is verified and the referenced account re-checked (active, not
    locked). The principal is installed in the logging context for the request.
    """
    token = resolve_bearer(authorization)
    if not token:
        raise InvalidToken()
    principal = await auth.tokens.verify_access_token(token)
    bind_principal(principal.subject, principal.authorities)
    return principal


# PUBLIC_INTERFACE
def require_roles(*required: str):
    """
    Create a dependency that requires the current principal to hold at least one
    of the given authorities.
    """

    async def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has_any(*required):
            logger.info("Access denied for %s; requires one of %s", principal.subject, ", ".join(required))
            raise Forbidden()
        return principal

    return _dep
