import socket
import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import jwt
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from civicdesk.core.config import settings
from civicdesk.models.base import Base
from civicdesk.models.report import Category, Report
from civicdesk.models.role import Role
from civicdesk.models.user import User

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Test user IDs (consistent across tests for predictable auth)
TEST_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
OTHER_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow
TEST_BOT_TOKEN = "test-bot-token"  # nosec B105

T0 = datetime(2025, 3, 14, 12, 0, tzinfo=UTC)


def create_test_jwt(
    user_id: uuid.UUID = TEST_USER_ID,
    *,
    secret: str = TEST_AUTH_SECRET,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed session JWT for test authentication.

    Args:
        user_id: User UUID to encode in the sub claim.
        secret: Signing secret (must match settings.auth_secret in tests).
        expires_delta: Time until expiration. Defaults to 1 hour.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "aud": settings.auth_issuer,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def sign_in(client, user_id: uuid.UUID = TEST_USER_ID) -> None:
    """Attach a session cookie for ``user_id`` to an httpx client."""
    client.cookies.set(settings.auth_cookie_name, create_test_jwt(user_id))


class FakeClock:
    """Settable clock for ledger tests."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


# =============================================================================
# Domain object builders (transient, no database)
# =============================================================================


def make_role(name: str) -> Role:
    return Role(
        id=uuid.uuid4(),
        name=name,
        label=name.title(),
        is_municipal=name != "user",
    )


def make_user(
    user_id: uuid.UUID = TEST_USER_ID,
    *,
    role: str | None = "user",
    email: str = "citizen@example.com",
    email_verified: datetime | None = None,
    channel_id: str | None = None,
) -> User:
    role_row = make_role(role) if role is not None else None
    return User(
        id=user_id,
        email=email,
        username=email.split("@")[0],
        role_id=role_row.id if role_row is not None else uuid.uuid4(),
        role=role_row,
        email_verified=email_verified,
        channel_id=channel_id,
    )


def make_report(
    *,
    status: str,
    owner: uuid.UUID,
    title: str = "Pothole",
    category: str | None = "Roads",
    created_at: datetime = T0,
) -> Report:
    return Report(
        id=uuid.uuid4(),
        title=title,
        status=status,
        user_id=owner,
        category=Category(id=uuid.uuid4(), name=category) if category else None,
        created_at=created_at,
    )


@pytest.fixture
def fake_db() -> MagicMock:
    """Stand-in AsyncSession for code paths that only commit or flush."""
    session = MagicMock(spec=AsyncSession)
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    return session


# =============================================================================
# PostgreSQL
# =============================================================================


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on the configured port, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex((settings.database_host, settings.database_port))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available.

    Called by fixtures that require database connection.
    """
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            f"PostgreSQL not available on port {settings.database_port}. "
            "Start database with: docker compose up -d"
        )


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()
