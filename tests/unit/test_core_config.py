"""Tests for application configuration.

Covers code lifetime and format defaults plus validation of code settings
and production security requirements.
"""

import pytest
from pydantic import SecretStr, ValidationError

from civicdesk.core.config import _INSECURE_DEFAULT_PASSWORD, Settings

# Reusable test constants
_SECURE_DB_PASSWORD = "my-secure-production-password-123!"
_TEST_AUTH_SECRET = "a" * 64
_PRODUCTION = "production"


def _production(**overrides) -> Settings:
    values = {
        "environment": _PRODUCTION,
        "database_password": _SECURE_DB_PASSWORD,
        "auth_secret": SecretStr(_TEST_AUTH_SECRET),
        "link_bot_token": SecretStr("bot-secret"),
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestCodeDefaults:
    """Verification code settings defaults."""

    def test_lifetimes(self):
        s = Settings(_env_file=None)
        assert s.email_verification_ttl_minutes == 30
        assert s.account_link_ttl_minutes == 15
        assert s.code_cleanup_grace_minutes == 60

    def test_formats(self):
        s = Settings(_env_file=None)
        assert s.verification_code_length == 6
        assert s.account_link_code_length == 6
        assert s.account_link_code_alphabet == "0123456789"
        assert s.code_issue_max_attempts == 5

    def test_sql_store_is_the_default(self):
        assert Settings(_env_file=None).code_store_backend == "sql"


class TestCodeValidation:
    """Validation of code settings."""

    def test_rejects_short_codes(self):
        with pytest.raises(ValidationError, match="at least 4 characters"):
            Settings(_env_file=None, verification_code_length=3)

    def test_rejects_single_character_alphabet(self):
        with pytest.raises(ValidationError, match="at least two characters"):
            Settings(_env_file=None, account_link_code_alphabet="0000")

    def test_rejects_non_positive_ttl(self):
        with pytest.raises(ValidationError, match="TTLs must be positive"):
            Settings(_env_file=None, account_link_ttl_minutes=0)

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValidationError, match="CODE_ISSUE_MAX_ATTEMPTS"):
            Settings(_env_file=None, code_issue_max_attempts=0)

    def test_rejects_unknown_store_backend(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, code_store_backend="redis")


class TestProductionSecurityValidation:
    """Tests for production security requirements."""

    def test_allows_default_password_in_development(self):
        s = Settings(
            _env_file=None,
            environment="development",
            database_password=_INSECURE_DEFAULT_PASSWORD,
        )
        assert s.database_password == _INSECURE_DEFAULT_PASSWORD

    def test_rejects_default_password_in_production(self):
        with pytest.raises(ValidationError, match="default database password"):
            _production(database_password=_INSECURE_DEFAULT_PASSWORD)

    def test_rejects_short_auth_secret_in_production(self):
        with pytest.raises(ValidationError, match="AUTH_SECRET"):
            _production(auth_secret=SecretStr("short"))

    def test_requires_bot_token_in_production(self):
        with pytest.raises(ValidationError, match="LINK_BOT_TOKEN"):
            _production(link_bot_token=SecretStr(""))

    def test_accepts_complete_production_config(self):
        assert _production().environment == _PRODUCTION

    def test_rejects_wildcard_cors(self):
        with pytest.raises(ValidationError, match="wildcard"):
            Settings(_env_file=None, allowed_origins=["*"])

    def test_samesite_none_requires_secure(self):
        with pytest.raises(ValidationError, match="AUTH_COOKIE_SECURE"):
            Settings(
                _env_file=None,
                auth_cookie_samesite="none",
                auth_cookie_secure=False,
            )

    def test_database_url_uses_asyncpg(self):
        s = Settings(_env_file=None, database_host="db", database_name="civic")
        assert s.database_url.startswith("postgresql+asyncpg://")
        assert s.database_url.endswith("@db:5432/civic")
