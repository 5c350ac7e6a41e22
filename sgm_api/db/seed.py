"""
Database seeding utilities for reference data.

Seeds:
- The role catalog (USER_MANAGEMENT, PROFILE_MANAGEMENT, AUDITOR)
- The privileged system administrator, holding every role, when
  SYSTEM_ADMIN_PASSWORD is configured

Usage:
  python -m sgm_api.db.run_migrations upgrade head
  python -m sgm_api.db.seed
"""

from __future__ import annotations

import asyncio
import logging

from sgm_api.core.roles import ROLE_DESCRIPTIONS, role_catalog
from sgm_api.core.security import get_password_hash
from sgm_api.core.settings import AppSettings, get_app_settings
from sgm_api.db.models.security import User
from sgm_api.db.session import get_async_session
from sgm_api.repositories.accounts import AccountRepository
from sgm_api.services.timeutils import utcnow

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
async def seed_all(settings: AppSettings | None = None) -> None:
    """
    Seed the database with reference data. Safe to run repeatedly.

    This function:
      - Creates any missing catalog roles
      - Creates the system administrator and grants it every role
    """
    settings = settings or get_app_settings()
    async for session in get_async_session():
        repo = AccountRepository(session)
        await seed_roles(repo)
        await seed_system_admin(repo, settings)


async def seed_roles(repo: AccountRepository) -> None:
    for name in role_catalog():
        await repo.ensure_role(name, ROLE_DESCRIPTIONS[name])


async def seed_system_admin(repo: AccountRepository, settings: AppSettings) -> User | None:
    """
    Create the privileged account if it does not exist yet.

    Privileged accounts are exempt from lockout and password aging, and cannot
    be edited through the administration endpoints.
    """
    username = settings.SYSTEM_ADMIN_USERNAME.strip().lower()
    admin = await repo.find_by_username(username)
    if admin is None:
        if not settings.SYSTEM_ADMIN_PASSWORD:
            logger.warning("SYSTEM_ADMIN_PASSWORD is not set; skipping creation of %s", username)
            return None
        password_hash = get_password_hash(settings.SYSTEM_ADMIN_PASSWORD)
        admin = User(
            username=username,
            name=settings.SYSTEM_ADMIN_NAME,
            password_hash=password_hash,
            password_history=[password_hash],
            last_password_change_at=utcnow(),
            failed_attempt_count=0,
            is_locked=False,
            is_active=True,
            is_super_user=True,
        )
        await repo.create(admin)
        logger.info("Created system administrator %s", username)

    for name in role_catalog():
        role = await repo.ensure_role(name, ROLE_DESCRIPTIONS[name])
        await repo.assign_role(admin.id, role.id)
    return admin


# PUBLIC_INTERFACE
def main() -> None:
    """Entrypoint to run the asynchronous seeding."""
    asyncio.run(seed_all())


if __name__ == "__main__":
    main()
