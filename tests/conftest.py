"""
Shared fixtures: an in-memory account store for service tests, a controllable
clock, and aiosqlite-backed SQLAlchemy sessions for repository and HTTP tests.
"""

import base64
import os
import uuid
from datetime import datetime, timedelta, timezone

# Environment must be in place before sgm_api modules read their settings.
os.environ.setdefault("JWT_BASE64_SECRET", base64.b64encode(b"s" * 64).decode())
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ["AUTO_SEED"] = "false"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from sgm_api.core.errors import NotFound  # noqa: E402
from sgm_api.core.security import build_signing_key, get_password_hash  # noqa: E402
from sgm_api.db.base import Base  # noqa: E402
from sgm_api.db.models.security import User  # noqa: E402
from sgm_api.services.attempts import AttemptTracker  # noqa: E402
from sgm_api.services.password_policy import PasswordPolicy  # noqa: E402
from sgm_api.services.tokens import TokenService  # noqa: E402

TEST_SECRET = base64.b64encode(b"k" * 64).decode()
DEFAULT_PASSWORD = "Secret#1"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class MutableClock:
    """Clock returning a settable instant; starts at the real current time so jose expiry checks agree."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def fake_hash(password: str) -> str:
    return f"plain:{password}"


def fake_verify(password: str, hashed: str) -> bool:
    return hashed == fake_hash(password)


def make_account(username="alice", password=DEFAULT_PASSWORD, hasher=fake_hash, **overrides) -> User:
    """Transient User with every column set explicitly (no session defaults apply)."""
    password_hash = hasher(password)
    fields = dict(
        id=uuid.uuid4(),
        username=username,
        name=username.title(),
        password_hash=password_hash,
        password_history=[password_hash],
        last_password_change_at=datetime.now(timezone.utc),
        last_failed_attempt_at=None,
        failed_attempt_count=0,
        last_login_at=None,
        is_locked=False,
        is_active=True,
        is_super_user=False,
    )
    fields.update(overrides)
    return User(**fields)


class InMemoryAccountStore:
    """Account store with the same coroutine surface the services use from AccountRepository."""

    def __init__(self):
        self.accounts = {}
        self.authorities = {}
        self.writes = 0

    def add(self, account, authorities=()):
        self.accounts[account.id] = account
        self.authorities[account.id] = list(authorities)
        return account

    async def find_by_username(self, username):
        wanted = username.strip().lower()
        for account in self.accounts.values():
            if account.username == wanted:
                return account
        return None

    async def get_by_id(self, account_id, *, fresh=False):
        return self.accounts.get(account_id)

    async def apply(self, account_id, mutate):
        account = self.accounts.get(account_id)
        if account is None:
            raise NotFound("error.globalNotFound", "user")
        self.writes += 1
        return mutate(account)

    async def list_authorities(self, account_id):
        return sorted(self.authorities.get(account_id, []))


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def store():
    return InMemoryAccountStore()


@pytest.fixture
def signing_key():
    return build_signing_key(TEST_SECRET)


@pytest.fixture
def policy():
    return PasswordPolicy(hash=fake_hash, verify_hash=fake_verify)


@pytest.fixture
def tracker(store, clock):
    return AttemptTracker(store, threshold=5, window=timedelta(seconds=3600), clock=clock)


@pytest.fixture
def tokens(signing_key, store, tracker, clock):
    return TokenService(signing_key, store, tracker, clock=clock)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
def bcrypt_account():
    """Factory for accounts hashed with the real bcrypt context."""

    def _make(username="alice", password=DEFAULT_PASSWORD, **overrides):
        return make_account(username, password, hasher=get_password_hash, **overrides)

    return _make
