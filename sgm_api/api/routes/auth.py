from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from sgm_api.core.deps import get_auth_service
from sgm_api.core.security import AUTHORIZATION_HEADER, BEARER_PREFIX
from sgm_api.services.authentication import AuthenticationService
from sgm_api.schemas.auth import LoginRequest, RefreshRequest, TokenPair

router = APIRouter(prefix="/authenticate", tags=["Auth"])


def _token_response(response: Response, access_token: str, refresh_token: str) -> TokenPair:
    response.headers[AUTHORIZATION_HEADER] = f"{BEARER_PREFIX}{access_token}"
    return TokenPair(access_token=access_token, refresh_token=refresh_token)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TokenPair,
    summary="Login",
    description=(
        "Authenticate with username and password and receive access/refresh tokens. "
        "Repeated failures lock the account for the configured window."
    ),
)
async def authenticate(
    payload: LoginRequest,
    response: Response,
    auth: AuthenticationService = Depends(get_auth_service),
) -> TokenPair:
    """Authenticate user and issue tokens."""
    pair = await auth.login(payload.username, payload.password)
    return _token_response(response, pair.access_token, pair.refresh_token)


# PUBLIC_INTERFACE
@router.post(
    "/refresh",
    response_model=TokenPair,
    summary="Refresh access token",
    description="Issue a new access token from a valid refresh token. The refresh token is returned unchanged.",
)
async def refresh_token(
    payload: RefreshRequest,
    response: Response,
    auth: AuthenticationService = Depends(get_auth_service),
) -> TokenPair:
    """Validate refresh token and issue a new access token."""
    pair = await auth.refresh(payload.refresh_token)
    return _token_response(response, pair.access_token, pair.refresh_token)
