from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status

from sgm_api.core.deps import get_user_service, require_roles
from sgm_api.core.roles import USER_MANAGEMENT, authority_for
from sgm_api.services.users import UserService
from sgm_api.schemas.auth import UserCreate, UserRead, UserRoles, UserUpdate

router = APIRouter(
    prefix="/users",
    tags=["Users"],
    dependencies=[Depends(require_roles(authority_for(USER_MANAGEMENT)))],
)


async def _user_to_read(svc: UserService, user) -> UserRead:
    roles = await svc.repo.list_role_names(user.id)
    return UserRead.model_validate(user).model_copy(update={"roles": roles})


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[UserRead],
    summary="List users",
    description="List non-privileged users ordered by name, optionally filtered by a name fragment.",
)
async def list_users(
    search: Optional[str] = Query(None, description="Case-insensitive name fragment"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    svc: UserService = Depends(get_user_service),
) -> List[UserRead]:
    return [await _user_to_read(svc, u) for u in await svc.list_users(search=search, limit=limit, offset=offset)]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create user",
    description="Create a user. The password must satisfy the password policy.",
)
async def create_user(
    payload: UserCreate,
    svc: UserService = Depends(get_user_service),
) -> UserRead:
    user = await svc.create_user(
        username=payload.username,
        name=payload.name,
        password=payload.password,
        confirm_password=payload.confirm_password,
        is_active=payload.is_active,
        roles=payload.roles,
    )
    return await _user_to_read(svc, user)


# PUBLIC_INTERFACE
@router.get("/{user_id}", response_model=UserRead, summary="Get user")
async def get_user(
    user_id: UUID = Path(..., description="User ID"),
    svc: UserService = Depends(get_user_service),
) -> UserRead:
    return await _user_to_read(svc, await svc.get_user(user_id))


# PUBLIC_INTERFACE
@router.put("/{user_id}", response_model=UserRead, summary="Update user")
async def update_user(
    payload: UserUpdate,
    user_id: UUID = Path(..., description="User ID"),
    svc: UserService = Depends(get_user_service),
) -> UserRead:
    user = await svc.update_user(
        user_id,
        username=payload.username,
        name=payload.name,
        password=payload.password,
        confirm_password=payload.confirm_password,
        is_active=payload.is_active,
    )
    return await _user_to_read(svc, user)


# PUBLIC_INTERFACE
@router.patch(
    "/{user_id}/status",
    response_model=UserRead,
    summary="Toggle user status",
    description="Unlock a locked user; otherwise flip the activation flag.",
)
async def toggle_status(
    user_id: UUID = Path(..., description="User ID"),
    svc: UserService = Depends(get_user_service),
) -> UserRead:
    return await _user_to_read(svc, await svc.toggle_status(user_id))


# PUBLIC_INTERFACE
@router.patch("/{user_id}/lock", response_model=UserRead, summary="Toggle user lock")
async def toggle_lock(
    user_id: UUID = Path(..., description="User ID"),
    svc: UserService = Depends(get_user_service),
) -> UserRead:
    return await _user_to_read(svc, await svc.toggle_lock(user_id))


# PUBLIC_INTERFACE
@router.post("/{user_id}/roles/{role_name}", response_model=UserRoles, summary="Assign role to user")
async def assign_role(
    user_id: UUID = Path(..., description="User ID"),
    role_name: str = Path(..., description="Role name"),
    svc: UserService = Depends(get_user_service),
) -> UserRoles:
    return UserRoles(user_id=user_id, roles=await svc.assign_role(user_id, role_name))


# PUBLIC_INTERFACE
@router.delete("/{user_id}/roles/{role_name}", response_model=UserRoles, summary="Remove role from user")
async def remove_role(
    user_id: UUID = Path(..., description="User ID"),
    role_name: str = Path(..., description="Role name"),
    svc: UserService = Depends(get_user_service),
) -> UserRoles:
    return UserRoles(user_id=user_id, roles=await svc.remove_role(user_id, role_name))
