"""
Tests for administrative account management backed by aiosqlite.
"""

from unittest.mock import patch

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from sgm_api.core.errors import (
    EditForbidden,
    FieldConflict,
    NotFound,
    PasswordMismatch,
    PasswordReused,
    RequiredField,
    WeakPassword,
)
from sgm_api.db.base import Base
from sgm_api.repositories.accounts import AccountRepository
from sgm_api.services.attempts import AttemptTracker
from sgm_api.services.password_policy import PasswordPolicy
from sgm_api.services.users import UserService

from conftest import fake_hash, fake_verify, make_account


def _service(session, clock):
    repo = AccountRepository(session)
    return UserService(repo, PasswordPolicy(hash=fake_hash, verify_hash=fake_verify), AttemptTracker(repo, clock=clock))


@pytest_asyncio.fixture
async def svc(session, clock):
    return _service(session, clock)


async def _create(svc, username="carol", **overrides):
    fields = dict(username=username, name=username.title(), password="Abcdef1!", confirm_password="Abcdef1!")
    fields.update(overrides)
    return await svc.create_user(**fields)


class TestCreateUser:

    @pytest.mark.asyncio
    async def test_creates_unprivileged_account(self, svc):
        user = await _create(svc, username="  Carol ", roles=["AUDITOR"])
        assert user.username == "carol"
        assert user.is_super_user is False
        assert user.is_locked is False
        assert user.last_password_change_at is None
        assert user.password_history == [fake_hash("Abcdef1!")]
        assert await svc.repo.list_authorities(user.id) == ["ROLE_AUDITOR"]

    @pytest.mark.asyncio
    async def test_duplicate_username(self, svc):
        await _create(svc)
        with pytest.raises(FieldConflict):
            await _create(svc, username="CAROL")

    @pytest.mark.asyncio
    async def test_password_required(self, svc):
        with pytest.raises(RequiredField):
            await _create(svc, password=None, confirm_password=None)

    @pytest.mark.asyncio
    async def test_password_policy_applies(self, svc):
        with pytest.raises(WeakPassword):
            await _create(svc, password="abc", confirm_password="abc")
        with pytest.raises(PasswordMismatch):
            await _create(svc, confirm_password="Other#123")

    @pytest.mark.asyncio
    async def test_unknown_role(self, svc):
        user = await _create(svc)
        with pytest.raises(NotFound):
            await svc.assign_role(user.id, "WIZARD")

    @pytest.mark.asyncio
    async def test_unknown_role_on_create_leaves_nothing_behind(self, svc):
        with pytest.raises(NotFound):
            await _create(svc, username="dave", roles=["AUDITOR", "WIZARD"])
        assert await svc.repo.find_by_username("dave") is None
        assert await svc.repo.count_users() == 0


class TestUpdateUser:

    @pytest.mark.asyncio
    async def test_updates_profile_and_password(self, svc):
        user = await _create(svc)
        updated = await svc.update_user(user.id, name="Carol King", password="Xyz#9876", confirm_password="xyz#9876")
        assert updated.name == "Carol King"
        assert updated.password_hash == fake_hash("Xyz#9876")
        assert updated.password_history == [fake_hash("Abcdef1!"), fake_hash("Xyz#9876")]

    @pytest.mark.asyncio
    async def test_reuse_checked_against_history(self, svc):
        user = await _create(svc)
        with pytest.raises(PasswordReused):
            await svc.update_user(user.id, password="Abcdef1!", confirm_password="Abcdef1!")

    @pytest.mark.asyncio
    async def test_username_taken_by_other_user(self, svc):
        await _create(svc, username="dave")
        user = await _create(svc)
        with pytest.raises(FieldConflict):
            await svc.update_user(user.id, username="Dave")

    @pytest.mark.asyncio
    async def test_privileged_account_not_editable(self, svc):
        root = await svc.repo.create(make_account("root", is_super_user=True))
        with pytest.raises(EditForbidden):
            await svc.update_user(root.id, name="Nope")
        with pytest.raises(EditForbidden):
            await svc.toggle_status(root.id)
        with pytest.raises(EditForbidden):
            await svc.toggle_lock(root.id)


class TestToggles:

    @pytest.mark.asyncio
    async def test_status_flips_activation(self, svc):
        user = await _create(svc)
        assert (await svc.toggle_status(user.id)).is_active is False
        assert (await svc.toggle_status(user.id)).is_active is True

    @pytest.mark.asyncio
    async def test_status_unlocks_locked_account(self, svc, clock):
        user = await svc.repo.create(
            make_account("erin", is_locked=True, failed_attempt_count=5, last_failed_attempt_at=clock())
        )
        result = await svc.toggle_status(user.id)
        assert result.is_locked is False
        assert result.is_active is True
        assert result.failed_attempt_count == 0

    @pytest.mark.asyncio
    async def test_lock_toggle(self, svc):
        user = await _create(svc)
        assert (await svc.toggle_lock(user.id)).is_locked is True
        assert (await svc.toggle_lock(user.id)).is_locked is False

    @pytest.mark.asyncio
    async def test_role_assignment_round(self, svc):
        user = await _create(svc)
        assert await svc.assign_role(user.id, "USER_MANAGEMENT") == ["USER_MANAGEMENT"]
        assert await svc.assign_role(user.id, "AUDITOR") == ["AUDITOR", "USER_MANAGEMENT"]
        assert await svc.remove_role(user.id, "USER_MANAGEMENT") == ["AUDITOR"]


class TestConcurrentUpdate:

    @pytest.mark.asyncio
    async def test_update_reapplied_over_concurrent_attempt_write(self, tmp_path, clock):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'users.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        maker = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
        try:
            async with maker() as setup:
                user = await _create(_service(setup, clock))

            async with maker() as first, maker() as second:
                admin = _service(first, clock)
                other = AccountRepository(second)
                real_commit = admin.repo.commit
                calls = {"commit": 0}

                async def interleaved_commit():
                    calls["commit"] += 1
                    if calls["commit"] == 1:
                        # a failed login for the same account lands between load and write
                        await other.apply(user.id, lambda a: setattr(a, "failed_attempt_count", 1))
                    await real_commit()

                with patch.object(admin.repo, "commit", side_effect=interleaved_commit):
                    updated = await admin.update_user(
                        user.id, name="Carol King", password="Xyz#9876", confirm_password="Xyz#9876"
                    )

                assert calls["commit"] == 2
                assert updated.name == "Carol King"

            async with maker() as check:
                final = await AccountRepository(check).get_by_id(user.id)
                assert final.name == "Carol King"
                assert final.password_hash == fake_hash("Xyz#9876")
                assert final.password_history == [fake_hash("Abcdef1!"), fake_hash("Xyz#9876")]
                assert final.failed_attempt_count == 0
                assert final.version == 3
        finally:
            await engine.dispose()
