"""
Tests for login-attempt throttling: counting inside the window, the lock
transition, lazy auto-unlock and the privileged-account exemption.
"""

from datetime import timedelta

import pytest

from sgm_api.core.errors import AccountLocked, EditForbidden
from sgm_api.services.attempts import AttemptState

from conftest import make_account


class TestRegisterFailure:

    @pytest.mark.asyncio
    async def test_locks_exactly_on_threshold(self, store, tracker):
        account = store.add(make_account())
        for i in range(1, tracker.threshold):
            assert await tracker.register_failure(account) is False
            assert account.is_locked is False
            assert account.failed_attempt_count == i
        assert await tracker.register_failure(account) is True
        assert account.is_locked is True
        assert tracker.state(account) is AttemptState.LOCKED

    @pytest.mark.asyncio
    async def test_failure_after_window_restarts_count(self, store, tracker, clock):
        account = store.add(make_account())
        for _ in range(3):
            await tracker.register_failure(account)
        assert account.failed_attempt_count == 3

        clock.advance(seconds=3601)
        await tracker.register_failure(account)
        assert account.failed_attempt_count == 1
        assert account.last_failed_attempt_at == clock()

    @pytest.mark.asyncio
    async def test_failure_inside_window_increments(self, store, tracker, clock):
        account = store.add(make_account())
        await tracker.register_failure(account)
        clock.advance(seconds=3599)
        await tracker.register_failure(account)
        assert account.failed_attempt_count == 2
        assert tracker.state(account) is AttemptState.WARN

    @pytest.mark.asyncio
    async def test_fifth_failure_from_four(self, store, tracker, clock):
        account = store.add(
            make_account(failed_attempt_count=4, last_failed_attempt_at=clock() - timedelta(minutes=5))
        )
        assert await tracker.register_failure(account) is True
        assert account.is_locked is True

    @pytest.mark.asyncio
    async def test_privileged_account_never_locks(self, store, tracker):
        account = store.add(make_account("root", is_super_user=True))
        for _ in range(100):
            assert await tracker.register_failure(account) is False
            assert account.is_locked is False
        assert account.failed_attempt_count == 0
        assert store.writes == 0


class TestEnsureUnlocked:

    @pytest.mark.asyncio
    async def test_noop_when_unlocked(self, store, tracker):
        account = store.add(make_account(failed_attempt_count=2))
        await tracker.ensure_unlocked(account)
        await tracker.ensure_unlocked(account)
        assert store.writes == 0
        assert account.failed_attempt_count == 2

    @pytest.mark.asyncio
    async def test_locked_inside_window_raises(self, store, tracker, clock):
        account = store.add(
            make_account(is_locked=True, failed_attempt_count=5, last_failed_attempt_at=clock() - timedelta(minutes=10))
        )
        with pytest.raises(AccountLocked):
            await tracker.ensure_unlocked(account)
        assert account.is_locked is True

    @pytest.mark.asyncio
    async def test_auto_unlock_after_window(self, store, tracker, clock):
        account = store.add(
            make_account(is_locked=True, failed_attempt_count=5, last_failed_attempt_at=clock() - timedelta(hours=2))
        )
        await tracker.ensure_unlocked(account)
        assert account.is_locked is False
        assert tracker.lock_in_effect(account) is False

    @pytest.mark.asyncio
    async def test_next_failure_after_auto_unlock_starts_fresh(self, store, tracker, clock):
        account = store.add(
            make_account(is_locked=True, failed_attempt_count=5, last_failed_attempt_at=clock() - timedelta(hours=2))
        )
        await tracker.ensure_unlocked(account)
        assert await tracker.register_failure(account) is False
        assert account.failed_attempt_count == 1


class TestSuccessAndToggle:

    @pytest.mark.asyncio
    async def test_success_resets_counter(self, store, tracker, clock):
        account = store.add(make_account(failed_attempt_count=3, last_failed_attempt_at=clock()))
        await tracker.register_success(account)
        assert account.failed_attempt_count == 0
        assert account.last_failed_attempt_at is None
        assert tracker.state(account) is AttemptState.OK

    @pytest.mark.asyncio
    async def test_success_without_failures_writes_nothing(self, store, tracker):
        account = store.add(make_account())
        await tracker.register_success(account)
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_manual_toggle(self, store, tracker, clock):
        account = store.add(make_account(failed_attempt_count=2, last_failed_attempt_at=clock()))
        assert await tracker.toggle_lock(account) is True
        assert account.is_locked is True
        assert await tracker.toggle_lock(account) is False
        assert account.failed_attempt_count == 0
        assert account.last_failed_attempt_at is None

    @pytest.mark.asyncio
    async def test_manual_toggle_rejects_privileged(self, store, tracker):
        account = store.add(make_account("root", is_super_user=True))
        with pytest.raises(EditForbidden):
            await tracker.toggle_lock(account)
        assert account.is_locked is False

    @pytest.mark.asyncio
    async def test_manual_lock_does_not_expire(self, store, tracker, clock):
        account = store.add(make_account(failed_attempt_count=1, last_failed_attempt_at=clock() - timedelta(hours=3)))
        await tracker.toggle_lock(account)
        clock.advance(days=30)
        assert tracker.lock_in_effect(account) is True
        with pytest.raises(AccountLocked):
            await tracker.ensure_unlocked(account)
