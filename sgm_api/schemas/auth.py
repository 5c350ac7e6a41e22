from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from sgm_api.schemas.common import CamelModel


class LoginRequest(CamelModel):
    """Credentials submitted to /authenticate."""
    username: str = Field(..., min_length=1, max_length=100, description="Username (case-insensitive)")
    password: str = Field(..., min_length=1, description="Plain password")


class TokenPair(CamelModel):
    """Access and refresh tokens."""
    access_token: str = Field(..., description="Signed access token")
    refresh_token: str = Field(..., description="Signed refresh token")


class RefreshRequest(CamelModel):
    """Request to refresh an access token."""
    refresh_token: str = Field(..., description="Refresh token")


class PasswordChangeRequest(CamelModel):
    """New password for the authenticated account."""
    password: str = Field(..., description="New password")
    confirm_password: str = Field(..., description="Confirmation of the new password")


class UserRead(CamelModel):
    """User read model."""
    id: UUID = Field(..., description="User ID")
    username: str = Field(..., description="Username")
    name: str = Field(..., description="Display name")
    is_active: bool = Field(..., description="Activation flag")
    is_locked: bool = Field(..., description="Lock flag")
    failed_attempt_count: int = Field(..., description="Failed logins inside the current window")
    last_login_at: Optional[datetime] = Field(None)
    last_password_change_at: Optional[datetime] = Field(None)
    created_at: datetime = Field(..., description="Created timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")
    roles: List[str] = Field(default_factory=list, description="Role names assigned to the user")


class AccountRead(UserRead):
    """The authenticated account as seen by its owner."""
    is_super_user: bool = Field(..., description="Privileged account flag")
    password_expired: bool = Field(..., description="True when the password must be changed")
    authorities: List[str] = Field(default_factory=list, description="Authorities granted to the account")


class UserCreate(CamelModel):
    """Admin create user payload."""
    username: str = Field(..., min_length=1, max_length=100, description="Username")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    password: Optional[str] = Field(None, description="Initial password")
    confirm_password: Optional[str] = Field(None, description="Password confirmation")
    is_active: bool = Field(default=True)
    roles: List[str] = Field(default_factory=list, description="Role names to grant")


class UserUpdate(CamelModel):
    """Admin update user payload."""
    username: Optional[str] = Field(None, min_length=1, max_length=100)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    password: Optional[str] = Field(None)
    confirm_password: Optional[str] = Field(None)
    is_active: Optional[bool] = Field(None)


class UserRoles(CamelModel):
    """Roles currently granted to a user."""
    user_id: UUID = Field(..., description="User ID")
    roles: List[str] = Field(default_factory=list)


class RoleRead(CamelModel):
    """Role catalog entry."""
    name: str = Field(..., description="Role name")
    authority: str = Field(..., description="Authority carried in access tokens")
    description: Optional[str] = Field(None)
