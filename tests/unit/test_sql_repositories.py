"""Tests for the PostgreSQL code store and repositories.

Skipped when PostgreSQL is not reachable (see tests/conftest.py).
"""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.models.report import Category, Report
from civicdesk.models.role import Role
from civicdesk.models.user import User
from civicdesk.models.verification_code import CodePurpose, VerificationCode
from civicdesk.repositories.report_repository import ReportRepository
from civicdesk.repositories.role_repository import RoleRepository
from civicdesk.repositories.user_repository import UserRepository
from civicdesk.services.code_store import DuplicateCodeError, SqlCodeStore
from civicdesk.services.token_ledger import (
    CodeAlreadyConsumedError,
    CodeExpiredError,
    TokenLedger,
)
from tests.conftest import T0, FakeClock

_LINK = CodePurpose.ACCOUNT_LINK.value
_EMAIL = CodePurpose.EMAIL_VERIFICATION.value


def _record(code: str, *, purpose: str = _LINK, **kwargs) -> VerificationCode:
    return VerificationCode(
        id=uuid.uuid4(),
        purpose=purpose,
        code=code,
        issued_at=T0,
        expires_at=kwargs.pop("expires_at", T0 + timedelta(minutes=15)),
        consumed=False,
        **kwargs,
    )


@pytest.fixture
async def citizen_role(db_session: AsyncSession) -> Role:
    role = Role(name="user", label="User", is_municipal=False)
    db_session.add(role)
    await db_session.flush()
    return role


@pytest.fixture
async def citizen(db_session: AsyncSession, citizen_role: Role) -> User:
    user = User(
        email="citizen@example.com",
        username="citizen",
        role_id=citizen_role.id,
    )
    db_session.add(user)
    await db_session.flush()
    return user


# =============================================================================
# SqlCodeStore
# =============================================================================


class TestSqlCodeStore:
    """SqlCodeStore against a real verification_codes table."""

    async def test_live_duplicate_is_rejected(self, db_session: AsyncSession):
        store = SqlCodeStore(db_session)
        await store.insert(_record("482913"))

        with pytest.raises(DuplicateCodeError):
            await store.insert(_record("482913"))

        # The savepoint kept the outer transaction usable
        assert (await store.lookup(_LINK, "482913")) is not None

    async def test_value_is_reusable_once_consumed(self, db_session: AsyncSession):
        store = SqlCodeStore(db_session)
        await store.insert(_record("482913"))
        await store.consume(_LINK, "482913", now=T0)

        await store.insert(_record("482913"))

        live = await store.lookup(_LINK, "482913")
        assert live.consumed is False

    async def test_same_value_for_other_purpose(self, db_session: AsyncSession):
        store = SqlCodeStore(db_session)
        await store.insert(_record("482913"))
        await store.insert(_record("482913", purpose=_EMAIL))

        assert (await store.lookup(_EMAIL, "482913")).purpose == _EMAIL

    async def test_consume_is_compare_and_set(self, db_session: AsyncSession):
        store = SqlCodeStore(db_session)
        await store.insert(_record("482913"))

        first = await store.consume(_LINK, "482913", now=T0)
        second = await store.consume(_LINK, "482913", now=T0)

        assert first is not None
        assert first.consumed is True
        assert first.consumed_at == T0
        assert second is None

    async def test_consume_honors_expiry_instant(self, db_session: AsyncSession):
        store = SqlCodeStore(db_session)
        expires_at = T0 + timedelta(minutes=15)
        await store.insert(_record("111111", expires_at=expires_at))
        await store.insert(_record("222222", expires_at=expires_at))

        late = await store.consume(
            _LINK, "111111", now=expires_at + timedelta(microseconds=1)
        )
        on_time = await store.consume(_LINK, "222222", now=expires_at)

        assert late is None
        assert on_time is not None

    async def test_consume_checks_subject(self, db_session: AsyncSession, citizen):
        store = SqlCodeStore(db_session)
        await store.insert(_record("482913", purpose=_EMAIL, subject_id=citizen.id))

        wrong = await store.consume(_EMAIL, "482913", now=T0, subject_id=uuid.uuid4())
        right = await store.consume(_EMAIL, "482913", now=T0, subject_id=citizen.id)

        assert wrong is None
        assert right is not None

    async def test_delete_unconsumed_by_channel(self, db_session: AsyncSession):
        store = SqlCodeStore(db_session)
        await store.insert(_record("111111", channel_id="tg-1"))
        await store.insert(_record("222222", channel_id="tg-1"))
        await store.insert(_record("333333", channel_id="tg-2"))
        await store.consume(_LINK, "222222", now=T0)

        removed = await store.delete_unconsumed(_LINK, channel_id="tg-1")

        assert removed == 1
        assert await store.lookup(_LINK, "111111") is None
        assert await store.lookup(_LINK, "222222") is not None
        assert await store.lookup(_LINK, "333333") is not None

    async def test_delete_unconsumed_without_key_is_noop(
        self, db_session: AsyncSession
    ):
        store = SqlCodeStore(db_session)
        await store.insert(_record("111111", channel_id="tg-1"))

        assert await store.delete_unconsumed(_LINK) == 0

    async def test_delete_expired(self, db_session: AsyncSession):
        store = SqlCodeStore(db_session)
        await store.insert(_record("111111", expires_at=T0))
        await store.insert(_record("222222", expires_at=T0 + timedelta(hours=1)))

        removed = await store.delete_expired(T0 + timedelta(minutes=1))

        assert removed == 1
        assert await store.lookup(_LINK, "111111") is None


class TestLedgerOnPostgres:
    """TokenLedger end to end over SqlCodeStore."""

    async def test_issue_redeem_and_reject(self, db_session: AsyncSession):
        clock = FakeClock(T0)
        ledger = TokenLedger(SqlCodeStore(db_session), clock=clock)
        issued = await ledger.issue(CodePurpose.ACCOUNT_LINK, channel_id="tg-9")

        redeemed = await ledger.redeem(CodePurpose.ACCOUNT_LINK, issued.code)

        assert redeemed.id == issued.id
        with pytest.raises(CodeAlreadyConsumedError):
            await ledger.redeem(CodePurpose.ACCOUNT_LINK, issued.code)

    async def test_expired_code(self, db_session: AsyncSession):
        clock = FakeClock(T0)
        ledger = TokenLedger(SqlCodeStore(db_session), clock=clock)
        issued = await ledger.issue(CodePurpose.ACCOUNT_LINK, channel_id="tg-9")
        clock.advance(minutes=16)

        with pytest.raises(CodeExpiredError):
            await ledger.redeem(CodePurpose.ACCOUNT_LINK, issued.code)


# =============================================================================
# Repositories
# =============================================================================


class TestUserRepository:
    """UserRepository lookups and channel binding."""

    async def test_email_lookup_normalizes(self, db_session: AsyncSession, citizen):
        found = await UserRepository.get_by_email(db_session, " Citizen@Example.com")
        assert found.id == citizen.id

    async def test_update_rejects_unknown_field(self, db_session, citizen):
        with pytest.raises(ValueError, match="channel_id"):
            await UserRepository.update(db_session, citizen.id, channel_id="tg-1")

    async def test_bind_channel(self, db_session: AsyncSession, citizen):
        await UserRepository.bind_channel(
            db_session,
            citizen.id,
            channel_id="tg-1",
            channel_handle="@citizen",
            linked_at=T0,
        )

        found = await UserRepository.get_by_channel_id(db_session, "tg-1")
        assert found.id == citizen.id
        assert found.channel_linked_at == T0

    async def test_channel_binds_to_one_user(
        self, db_session: AsyncSession, citizen, citizen_role
    ):
        other = User(email="o@example.com", username="other", role_id=citizen_role.id)
        db_session.add(other)
        await db_session.flush()
        await UserRepository.bind_channel(
            db_session, citizen.id, channel_id="tg-1", channel_handle=None, linked_at=T0
        )

        with pytest.raises(IntegrityError):
            await UserRepository.bind_channel(
                db_session,
                other.id,
                channel_id="tg-1",
                channel_handle=None,
                linked_at=T0,
            )


class TestRoleRepository:
    """RoleRepository catalog seeding and listing."""

    async def test_seed_is_idempotent(self, db_session: AsyncSession):
        first = await RoleRepository.seed_catalog(db_session)
        second = await RoleRepository.seed_catalog(db_session)

        assert first == 5
        assert second == 0

    async def test_assignable_roles_exclude_citizens(self, db_session: AsyncSession):
        await RoleRepository.seed_catalog(db_session)

        names = [r.name for r in await RoleRepository.list_assignable(db_session)]

        assert names == ["admin", "external_maintainer", "pr_officer", "tech_officer"]

    async def test_get_by_name(self, db_session: AsyncSession):
        await RoleRepository.seed_catalog(db_session)

        role = await RoleRepository.get_by_name(db_session, "pr_officer")

        assert role.label == "PR Officer"
        assert role.is_municipal is True
        assert await RoleRepository.get_by_name(db_session, "mayor") is None


class TestReportRepository:
    """ReportRepository ordering."""

    async def test_list_all_newest_first(self, db_session: AsyncSession, citizen):
        roads = Category(name="Roads")
        db_session.add(roads)
        await db_session.flush()
        for offset, title in enumerate(["Oldest", "Middle", "Newest"]):
            db_session.add(
                Report(
                    title=title,
                    status="in_progress",
                    user_id=citizen.id,
                    category_id=roads.id,
                    created_at=T0 + timedelta(days=offset),
                )
            )
        await db_session.flush()

        reports = await ReportRepository.list_all(db_session)

        assert [r.title for r in reports] == ["Newest", "Middle", "Oldest"]
        assert reports[0].category.name == "Roads"
