"""Tests for expired verification code cleanup and the purge script."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from civicdesk.services.verification_cleanup import CleanupError, purge_expired_codes
from scripts.purge_expired_codes import run_purge
from tests.conftest import T0

_EXPIRE = "civicdesk.services.token_ledger.TokenLedger.expire"


class TestPurgeExpiredCodes:
    """Tests for purge_expired_codes()."""

    async def test_returns_deleted_count(self, fake_db):
        with patch(_EXPIRE, new_callable=AsyncMock, return_value=3) as expire:
            deleted = await purge_expired_codes(
                fake_db, now=T0, grace=timedelta(minutes=5)
            )

        assert deleted == 3
        expire.assert_awaited_once_with(now=T0, grace=timedelta(minutes=5))

    async def test_database_failure_becomes_cleanup_error(self, fake_db):
        failure = OperationalError("DELETE", {}, Exception("connection lost"))
        with (
            patch(_EXPIRE, new_callable=AsyncMock, side_effect=failure),
            pytest.raises(CleanupError) as exc_info,
        ):
            await purge_expired_codes(fake_db)

        assert exc_info.value.code == "CLEANUP_ERROR"
        assert exc_info.value.status_code == 500


class TestRunPurge:
    """Tests for the purge script's transaction wrapper."""

    async def test_commits_after_purge(self, fake_db):
        with patch(_EXPIRE, new_callable=AsyncMock, return_value=2) as expire:
            deleted = await run_purge(fake_db, grace_minutes=15)

        assert deleted == 2
        assert expire.await_args.kwargs["grace"] == timedelta(minutes=15)
        fake_db.commit.assert_awaited_once()

    async def test_default_grace(self, fake_db):
        with patch(_EXPIRE, new_callable=AsyncMock, return_value=0) as expire:
            await run_purge(fake_db, grace_minutes=None)

        assert expire.await_args.kwargs["grace"] is None

    async def test_failure_does_not_commit(self, fake_db):
        failure = OperationalError("DELETE", {}, Exception("connection lost"))
        with (
            patch(_EXPIRE, new_callable=AsyncMock, side_effect=failure),
            pytest.raises(CleanupError),
        ):
            await run_purge(fake_db, grace_minutes=None)

        fake_db.commit.assert_not_awaited()
