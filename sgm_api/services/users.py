from __future__ import annotations

import logging
from typing import Iterable, List, Optional
from uuid import UUID

from sgm_api.core.errors import EditForbidden, FieldConflict, NotFound
from sgm_api.core.roles import ROLE_DESCRIPTIONS, is_known_role
from sgm_api.db.models.security import User
from sgm_api.repositories.accounts import AccountRepository
from sgm_api.services.attempts import AttemptTracker
from sgm_api.services.password_policy import PasswordPolicy

logger = logging.getLogger(__name__)


class UserService:
    """
    Administrative account management.

    Privileged accounts are not editable through this service. Passwords set by
    an administrator leave last_password_change_at empty so the owner is asked
    to pick a new one.
    """

    def __init__(self, repo: AccountRepository, policy: PasswordPolicy, attempts: AttemptTracker) -> None:
        self.repo = repo
        self.policy = policy
        self.attempts = attempts

    async def _get(self, user_id: UUID) -> User:
        user = await self.repo.get_by_id(user_id)
        if user is None:
            raise NotFound("error.globalNotFound", "user")
        return user

    async def _get_editable(self, user_id: UUID) -> User:
        user = await self._get(user_id)
        if user.is_super_user:
            raise EditForbidden("error.editSuperEntity", "user")
        return user

    async def _check_username_free(self, username: str, owner_id: Optional[UUID] = None) -> None:
        existing = await self.repo.find_by_username(username)
        if existing is not None and existing.id != owner_id:
            raise FieldConflict("error.conflictField", "user", "field.username")

    # PUBLIC_INTERFACE
    async def get_user(self, user_id: UUID) -> User:
        return await self._get(user_id)

    # PUBLIC_INTERFACE
    async def list_users(self, search: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[User]:
        return await self.repo.list_users(search=search, limit=limit, offset=offset)

    # PUBLIC_INTERFACE
    async def create_user(
        self,
        *,
        username: str,
        name: str,
        password: Optional[str],
        confirm_password: Optional[str],
        is_active: bool = True,
        roles: Iterable[str] = (),
    ) -> User:
        """Create a non-privileged, unlocked account with a validated password."""
        roles = list(roles)
        for role in roles:
            if not is_known_role(role):
                raise NotFound("error.globalNotFound", "role")
        username = username.strip().lower()
        await self._check_username_free(username)
        self.policy.validate(password, confirm_password, creating=True)

        password_hash = self.policy.hash(password)
        user = User(
            username=username,
            name=name,
            password_hash=password_hash,
            password_history=self.policy.record_new_password([], password_hash),
            last_password_change_at=None,
            failed_attempt_count=0,
            is_locked=False,
            is_active=is_active,
            is_super_user=False,
        )
        await self.repo.create(user)
        for role in roles:
            await self.assign_role(user.id, role)
        logger.info("Created user %s", username)
        return user

    # PUBLIC_INTERFACE
    async def update_user(
        self,
        user_id: UUID,
        *,
        username: Optional[str] = None,
        name: Optional[str] = None,
        password: Optional[str] = None,
        confirm_password: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> User:
        """Update profile fields; a supplied password goes through the full policy."""
        user = await self._get_editable(user_id)

        if username is not None:
            username = username.strip().lower()
            await self._check_username_free(username, owner_id=user.id)
        password_hash = None
        if password:
            self.policy.validate(password, confirm_password, user.password_history)
            password_hash = self.policy.hash(password)

        def _update(a: User) -> User:
            if username is not None:
                a.username = username
            if name is not None:
                a.name = name
            if is_active is not None:
                a.is_active = is_active
            if password_hash is not None:
                a.password_hash = password_hash
                a.password_history = self.policy.record_new_password(a.password_history, password_hash)
                a.failed_attempt_count = 0
                a.last_failed_attempt_at = None
                a.last_password_change_at = None
            return a

        return await self.repo.apply(user.id, _update)

    # PUBLIC_INTERFACE
    async def toggle_status(self, user_id: UUID) -> User:
        """
        Logical exclusion: a locked account is unlocked (counters cleared);
        otherwise the activation flag flips.
        """
        user = await self._get_editable(user_id)
        if user.is_locked:
            await self.attempts.toggle_lock(user)
            return user

        def _flip(a: User) -> None:
            a.is_active = not a.is_active

        await self.repo.apply(user.id, _flip)
        logger.info("User %s %s", user.username, "activated" if user.is_active else "deactivated")
        return user

    # PUBLIC_INTERFACE
    async def toggle_lock(self, user_id: UUID) -> User:
        user = await self._get_editable(user_id)
        await self.attempts.toggle_lock(user)
        return user

    # PUBLIC_INTERFACE
    async def assign_role(self, user_id: UUID, role_name: str) -> List[str]:
        if not is_known_role(role_name):
            raise NotFound("error.globalNotFound", "role")
        user = await self._get(user_id)
        role = await self.repo.ensure_role(role_name, ROLE_DESCRIPTIONS[role_name])
        await self.repo.assign_role(user.id, role.id)
        return await self.repo.list_role_names(user.id)

    # PUBLIC_INTERFACE
    async def remove_role(self, user_id: UUID, role_name: str) -> List[str]:
        user = await self._get(user_id)
        role = await self.repo.get_role_by_name(role_name)
        if role is None:
            raise NotFound("error.globalNotFound", "role")
        await self.repo.remove_role(user.id, role.id)
        return await self.repo.list_role_names(user.id)
