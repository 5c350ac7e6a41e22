from __future__ import annotations

import logging
from typing import Callable, List, Optional, TypeVar
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from sgm_api.core.errors import ConcurrencyFailure, FieldConflict, NotFound
from sgm_api.core.roles import authorities_for
from sgm_api.db.models.security import Role, User, UserRole
from .base import BaseRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3


class AccountRepository(BaseRepository):
    """
    Repository for accounts and their role assignments.

    Usernames are stored lower-case; lookups normalise the same way.
    """

    def __init__(self, session: AsyncSession, max_retries: int = DEFAULT_MAX_RETRIES) -> None:
        super().__init__(session)
        self.max_retries = max_retries

    # Accounts
    async def find_by_username(self, username: str) -> Optional[User]:
        stmt = select(User).where(User.username == username.strip().lower())
        return await self.scalar_one_or_none(stmt)

    async def get_by_id(self, user_id: UUID, *, fresh: bool = False) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def count_users(self) -> int:
        result = await self.execute(select(func.count(User.id)))
        return int(result.scalar_one())

    async def list_users(self, search: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[User]:
        """List non-privileged accounts, optionally filtered by a case-insensitive name fragment."""
        stmt = select(User).where(User.is_super_user.is_(False))
        if search:
            stmt = stmt.where(User.name.ilike(f"%{search}%"))
        stmt = stmt.order_by(User.name).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def create(self, user: User) -> User:
        await self.add(user)
        try:
            await self.commit()
        except IntegrityError as exc:
            await self.rollback()
            raise FieldConflict("error.conflictField", "user", "field.username") from exc
        return user

    async def save(self, user: User) -> User:
        """Commit pending changes on a loaded account; a version conflict is not retried here."""
        # rollback expires the instance, so read the id while it is still loaded
        user_id = user.id
        try:
            await self.commit()
        except StaleDataError as exc:
            await self.rollback()
            logger.warning("Concurrent update detected for account %s", user_id)
            raise ConcurrencyFailure() from exc
        except IntegrityError as exc:
            await self.rollback()
            raise FieldConflict("error.conflictField", "user", "field.username") from exc
        return user

    async def apply(self, user_id: UUID, mutate: Callable[[User], T]) -> T:
        """
        Read-modify-write an account under optimistic concurrency control.

        `mutate` receives the freshly loaded account and must be a pure state
        transition: on a version conflict the transaction is rolled back, the row
        reloaded and `mutate` applied again, up to `max_retries` times.
        """
        for attempt in range(1, self.max_retries + 1):
            user = await self.get_by_id(user_id, fresh=True)
            if user is None:
                raise NotFound("error.globalNotFound", "user")
            result = mutate(user)
            try:
                await self.commit()
                return result
            except StaleDataError:
                await self.rollback()
                logger.warning(
                    "Version conflict updating account %s (attempt %d/%d)", user_id, attempt, self.max_retries
                )
            except IntegrityError as exc:
                await self.rollback()
                raise FieldConflict("error.conflictField", "user", "field.username") from exc
        raise ConcurrencyFailure()

    # Roles
    async def list_role_names(self, user_id: UUID) -> List[str]:
        stmt = (
            select(Role.name)
            .join(UserRole, Role.id == UserRole.role_id)
            .where(UserRole.user_id == user_id)
            .order_by(Role.name)
        )
        return list(await self.scalars(stmt))

    async def list_authorities(self, user_id: UUID) -> List[str]:
        """Authorities (ROLE_<name>) granted to an account, resolved by an explicit join."""
        return authorities_for(await self.list_role_names(user_id))

    async def list_roles(self) -> List[Role]:
        return list(await self.scalars(select(Role).order_by(Role.name)))

    async def get_role_by_name(self, name: str) -> Optional[Role]:
        stmt = select(Role).where(Role.name == name)
        return await self.scalar_one_or_none(stmt)

    async def ensure_role(self, name: str, description: Optional[str] = None) -> Role:
        role = await self.get_role_by_name(name)
        if role:
            return role
        role = Role(name=name, description=description)
        await self.add(role)
        await self.commit()
        return role

    async def assign_role(self, user_id: UUID, role_id: UUID) -> None:
        stmt = select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        if await self.scalar_one_or_none(stmt):
            return
        await self.add(UserRole(user_id=user_id, role_id=role_id))
        await self.commit()

    async def remove_role(self, user_id: UUID, role_id: UUID) -> None:
        stmt = delete(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        await self.execute(stmt)
        await self.commit()
