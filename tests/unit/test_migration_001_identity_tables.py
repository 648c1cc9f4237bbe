"""Tests for migration 001: identity, report and verification code tables.

Runs alembic against the test database. Skipped when PostgreSQL is not
reachable.
"""

import asyncio
import uuid
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from civicdesk.core.config import settings
from civicdesk.core.roles import ROLE_CATALOG

TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

_INSERT_CODE = text(
    "INSERT INTO verification_codes "
    "(purpose, code, issued_at, expires_at, consumed) "
    "VALUES (:purpose, :code, now(), now() + interval '15 minutes', :consumed)"
)


# =============================================================================
# Helpers
# =============================================================================


async def _reset_schema(conn) -> None:
    """Drop and recreate the public schema."""
    await conn.execute(text("DROP SCHEMA public CASCADE"))
    await conn.execute(text("CREATE SCHEMA public"))


def _create_alembic_config():
    """Create alembic Config without ini file.

    Avoids fileConfig() which disables existing loggers and breaks
    pytest's caplog fixture for tests running after migration tests.
    """
    from alembic.config import Config

    cfg = Config()
    cfg.set_main_option("script_location", "migrations")
    return cfg


# =============================================================================
# Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def migration_engine(monkeypatch: pytest.MonkeyPatch):
    """Create engine and run alembic migrations up to head."""
    from tests.conftest import skip_if_no_postgres

    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await _reset_schema(conn)

    from alembic import command

    # env.py reads the URL from settings; point it at the test database
    monkeypatch.setattr(settings, "database_name", f"{settings.database_name}_test")
    await asyncio.to_thread(command.upgrade, _create_alembic_config(), "head")
    monkeypatch.undo()

    yield engine

    async with engine.begin() as conn:
        await _reset_schema(conn)

    await engine.dispose()


@pytest_asyncio.fixture
async def migration_session(
    migration_engine,
) -> AsyncGenerator[AsyncSession, None]:
    """Create session on migrated database."""
    session_factory = async_sessionmaker(
        migration_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Schema
# =============================================================================


class TestTables:
    """Verify the tables the service reads and writes."""

    async def test_tables_exist(self, migration_session: AsyncSession):
        result = await migration_session.execute(
            text(
                "SELECT table_name FROM information_schema.tables "
                "WHERE table_schema = 'public'"
            )
        )
        tables = {row[0] for row in result}
        assert {
            "roles",
            "users",
            "categories",
            "reports",
            "verification_codes",
        } <= tables

    async def test_roles_are_seeded_from_catalog(
        self, migration_session: AsyncSession
    ):
        result = await migration_session.execute(
            text("SELECT name, label, is_municipal FROM roles")
        )
        seeded = {tuple(row) for row in result}
        assert seeded == {
            (d.name.value, d.label, d.is_municipal) for d in ROLE_CATALOG
        }

    async def test_user_channel_is_unique(self, migration_session: AsyncSession):
        insert_user = text(
            "INSERT INTO users (id, email, username, role_id, channel_id) "
            "VALUES (:id, :email, :username, "
            "(SELECT id FROM roles WHERE name = 'user'), 'tg-1')"
        )
        await migration_session.execute(
            insert_user,
            {"id": uuid.uuid4(), "email": "a@example.com", "username": "a"},
        )

        with pytest.raises(IntegrityError):
            await migration_session.execute(
                insert_user,
                {"id": uuid.uuid4(), "email": "b@example.com", "username": "b"},
            )


# =============================================================================
# Verification codes
# =============================================================================


class TestVerificationCodes:
    """Verify the partial unique index and purpose check."""

    async def test_live_duplicate_is_rejected(self, migration_session: AsyncSession):
        params = {"purpose": "account_link", "code": "482913", "consumed": False}
        await migration_session.execute(_INSERT_CODE, params)

        with pytest.raises(IntegrityError):
            await migration_session.execute(_INSERT_CODE, params)

    async def test_consumed_value_does_not_block_reuse(
        self, migration_session: AsyncSession
    ):
        await migration_session.execute(
            _INSERT_CODE,
            {"purpose": "account_link", "code": "482913", "consumed": True},
        )
        await migration_session.execute(
            _INSERT_CODE,
            {"purpose": "account_link", "code": "482913", "consumed": False},
        )
        await migration_session.execute(
            _INSERT_CODE,
            {"purpose": "email_verification", "code": "482913", "consumed": False},
        )

        result = await migration_session.execute(
            text("SELECT count(*) FROM verification_codes WHERE code = '482913'")
        )
        assert result.scalar_one() == 3

    async def test_unknown_purpose_is_rejected(self, migration_session: AsyncSession):
        with pytest.raises(IntegrityError):
            await migration_session.execute(
                _INSERT_CODE,
                {"purpose": "password_reset", "code": "482913", "consumed": False},
            )
