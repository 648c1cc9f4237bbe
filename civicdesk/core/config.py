"""Application configuration loaded from environment variables.

Settings for database, HTTP API, session cookies, verification codes and
account linking. Uses pydantic-settings for validation and .env file support.
"""

import string
from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "civicdesk_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32

# Shortest code we accept for either purpose
_MIN_CODE_LENGTH = 4


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "civicdesk"
    database_user: str = "civicdesk_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS (Security)
    # Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:5173"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Session cookie (JWT). Session storage itself lives outside this service;
    # we only sign and read the cookie that carries the principal id.
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "civicdesk"
    auth_cookie_name: str = "civicdesk.session-token"
    auth_cookie_secure: bool = True
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    auth_cookie_domain: str = ""
    auth_session_hours: int = 24

    # Verification codes
    email_verification_ttl_minutes: int = 30
    verification_code_length: int = 6
    account_link_ttl_minutes: int = 15
    account_link_code_length: int = 6
    account_link_code_alphabet: str = string.digits
    code_issue_max_attempts: int = 5
    code_cleanup_grace_minutes: int = 60
    # "sql" for PostgreSQL-backed codes, "memory" for single-process local runs
    code_store_backend: Literal["sql", "memory"] = "sql"

    # Chat-bot integration: shared secret sent in X-Bot-Token
    link_bot_token: SecretStr = SecretStr("")

    # Email
    email_from: str = "noreply@civicdesk.local"
    resend_api_key: SecretStr = SecretStr("")

    # Rate Limiting (Security)
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_code_request: str = "5/hour"
    rate_limit_code_redeem: str = "10/minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate code settings and production security requirements.

        Checks:
        - Code lengths are long enough to resist guessing
        - Account-link alphabet has at least two distinct characters
        - TTLs and retry bounds are positive
        - SameSite=None requires Secure flag (browser requirement)
        - CORS must not use wildcard origin (incompatible with credentials)
        - Database password and AUTH_SECRET must not be defaults in production
        """
        if (
            self.verification_code_length < _MIN_CODE_LENGTH
            or self.account_link_code_length < _MIN_CODE_LENGTH
        ):
            msg = f"Verification codes must be at least {_MIN_CODE_LENGTH} characters"
            raise ValueError(msg)

        if len(set(self.account_link_code_alphabet)) < 2:
            msg = "ACCOUNT_LINK_CODE_ALPHABET must contain at least two characters"
            raise ValueError(msg)

        if (
            self.email_verification_ttl_minutes <= 0
            or self.account_link_ttl_minutes <= 0
        ):
            msg = "Verification code TTLs must be positive"
            raise ValueError(msg)

        if self.code_issue_max_attempts < 1:
            msg = "CODE_ISSUE_MAX_ATTEMPTS must be at least 1"
            raise ValueError(msg)

        if self.auth_cookie_samesite == "none" and not self.auth_cookie_secure:
            msg = (
                "AUTH_COOKIE_SECURE must be true when AUTH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.auth_secret.get_secret_value()
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters in production."
                )
                raise ValueError(msg)

            if not self.link_bot_token.get_secret_value():
                msg = "LINK_BOT_TOKEN must be set in production."
                raise ValueError(msg)

        return self


settings = Settings()
