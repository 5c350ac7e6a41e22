from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from sgm_api.core.deps import get_account_repository, get_auth_service, get_current_principal
from sgm_api.core.errors import InvalidToken
from sgm_api.repositories.accounts import AccountRepository
from sgm_api.services.authentication import AuthenticationService
from sgm_api.services.timeutils import utcnow
from sgm_api.services.tokens import Principal
from sgm_api.schemas.auth import AccountRead, PasswordChangeRequest
from sgm_api.schemas.common import MessageResponse

router = APIRouter(prefix="/account", tags=["Account"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=AccountRead,
    summary="Current account",
    description="Return the authenticated account, its authorities and whether its password must be changed.",
)
async def get_account(
    principal: Principal = Depends(get_current_principal),
    repo: AccountRepository = Depends(get_account_repository),
    auth: AuthenticationService = Depends(get_auth_service),
) -> AccountRead:
    user = await repo.find_by_username(principal.subject)
    if user is None:
        raise InvalidToken()
    return AccountRead(
        id=user.id,
        username=user.username,
        name=user.name,
        is_active=user.is_active,
        is_locked=user.is_locked,
        is_super_user=user.is_super_user,
        failed_attempt_count=user.failed_attempt_count,
        last_login_at=user.last_login_at,
        last_password_change_at=user.last_password_change_at,
        created_at=user.created_at,
        updated_at=user.updated_at,
        roles=await repo.list_role_names(user.id),
        authorities=principal.authorities,
        password_expired=auth.policy.password_expired(user, utcnow()),
    )


# PUBLIC_INTERFACE
@router.patch(
    "/change-password",
    response_model=MessageResponse,
    summary="Change password",
    description=(
        "Replace the authenticated account's password. The new password must satisfy the "
        "complexity rules, differ from the stored history and match its confirmation."
    ),
)
async def change_password(
    payload: PasswordChangeRequest,
    response: Response,
    principal: Principal = Depends(get_current_principal),
    repo: AccountRepository = Depends(get_account_repository),
    auth: AuthenticationService = Depends(get_auth_service),
) -> MessageResponse:
    user = await repo.find_by_username(principal.subject)
    if user is None:
        raise InvalidToken()
    await auth.change_password(user.id, payload.password, payload.confirm_password)
    response.headers["Location"] = f"/api/v1/users/{user.id}"
    return MessageResponse(message="Password changed", details={"id": str(user.id)})
