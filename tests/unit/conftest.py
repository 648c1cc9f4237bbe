"""Shared fixtures for unit tests that run without PostgreSQL.

UserRepository is swapped for an in-memory fake in every module that uses
it, and API clients run against the in-memory code store with get_db
overridden by a stand-in session.
"""

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr

from civicdesk.core.config import settings
from civicdesk.core.rate_limiting import limiter
from civicdesk.models.user import User
from civicdesk.services.code_store import reset_memory_code_store
from tests.conftest import TEST_AUTH_SECRET, TEST_BOT_TOKEN

_USER_REPOSITORY_MODULES = (
    "civicdesk.api.deps",
    "civicdesk.services.account_link",
    "civicdesk.services.email_verification",
)


class FakeUserRepository:
    """In-memory stand-in with the UserRepository call signatures."""

    def __init__(self) -> None:
        self.users: dict[uuid.UUID, User] = {}

    def add(self, user: User) -> User:
        self.users[user.id] = user
        return user

    async def get_by_id(self, _db, user_id: uuid.UUID) -> User | None:
        return self.users.get(user_id)

    async def get_by_email(self, _db, email: str) -> User | None:
        wanted = email.strip().lower()
        return next((u for u in self.users.values() if u.email == wanted), None)

    async def get_by_channel_id(self, _db, channel_id: str) -> User | None:
        return next(
            (u for u in self.users.values() if u.channel_id == channel_id), None
        )

    async def update(self, _db, user_id: uuid.UUID, **kwargs) -> User | None:
        user = self.users.get(user_id)
        if user is None:
            return None
        for field, value in kwargs.items():
            setattr(user, field, value)
        return user

    async def bind_channel(
        self,
        _db,
        user_id: uuid.UUID,
        *,
        channel_id: str,
        channel_handle: str | None,
        linked_at: datetime,
    ) -> User | None:
        user = self.users.get(user_id)
        if user is None:
            return None
        user.channel_id = channel_id
        user.channel_handle = channel_handle
        user.channel_linked_at = linked_at
        return user


@pytest.fixture
def user_repo(monkeypatch: pytest.MonkeyPatch) -> FakeUserRepository:
    """Replace UserRepository everywhere with one shared in-memory fake."""
    repo = FakeUserRepository()
    for module in _USER_REPOSITORY_MODULES:
        monkeypatch.setattr(f"{module}.UserRepository", repo)
    return repo


@pytest_asyncio.fixture
async def api_client(
    fake_db,
    user_repo,  # noqa: ARG001 - patches UserRepository
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client over the in-memory code store.

    Sets up:
    - get_db override yielding a stand-in session
    - JWT signing secret and chat-bot token for tests
    - CODE_STORE_BACKEND=memory, rate limiting off
    """
    from civicdesk.core.database import get_db
    from civicdesk.main import app

    async def override_get_db():
        yield fake_db

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(settings, "auth_secret", SecretStr(TEST_AUTH_SECRET))
    monkeypatch.setattr(settings, "link_bot_token", SecretStr(TEST_BOT_TOKEN))
    monkeypatch.setattr(settings, "code_store_backend", "memory")
    monkeypatch.setattr(limiter, "enabled", False)
    reset_memory_code_store()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    reset_memory_code_store()
