"""Tests for the role seed script."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from scripts.seed_roles import run_seed

_SEED = "civicdesk.repositories.role_repository.RoleRepository.seed_catalog"


class TestRunSeed:
    """Tests for run_seed()."""

    async def test_commits_after_seed(self, fake_db):
        with patch(_SEED, new_callable=AsyncMock, return_value=2) as seed:
            inserted = await run_seed(fake_db)

        assert inserted == 2
        seed.assert_awaited_once_with(fake_db)
        fake_db.commit.assert_awaited_once()

    async def test_failure_does_not_commit(self, fake_db):
        failure = OperationalError("INSERT", {}, Exception("connection lost"))
        with (
            patch(_SEED, new_callable=AsyncMock, side_effect=failure),
            pytest.raises(OperationalError),
        ):
            await run_seed(fake_db)

        fake_db.commit.assert_not_awaited()
