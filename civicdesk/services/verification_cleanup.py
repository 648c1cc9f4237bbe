"""Verification code cleanup.

Periodic removal of verification codes that expired more than the grace
period ago. Expired codes can no longer be redeemed, so this only reclaims
storage; it is safe to run while codes are being issued and redeemed.

Invoked by scripts/purge_expired_codes.py (cron) or any scheduler.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.core.errors import APIError
from civicdesk.services.code_store import SqlCodeStore
from civicdesk.services.token_ledger import TokenLedger

logger = logging.getLogger(__name__)


class CleanupError(APIError):
    """Raised when a cleanup operation fails at the database level."""

    def __init__(self, message: str) -> None:
        super().__init__(
            code="CLEANUP_ERROR",
            message=message,
            status_code=500,
        )


async def purge_expired_codes(
    db: AsyncSession,
    *,
    now: datetime | None = None,
    grace: timedelta | None = None,
) -> int:
    """Delete verification codes past expiry plus grace.

    Args:
        db: Async database session. The caller commits.
        now: Reference time. Defaults to current UTC time.
        grace: Retention after expiry. Defaults to settings.

    Returns:
        Number of deleted codes.

    Raises:
        CleanupError: If the database call fails.
    """
    ledger = TokenLedger(SqlCodeStore(db))
    try:
        deleted = await ledger.expire(now=now, grace=grace)
    except SQLAlchemyError as exc:
        logger.exception("Verification code cleanup failed")
        raise CleanupError("Verification code cleanup failed") from exc

    logger.info("Verification code cleanup removed %d row(s)", deleted)
    return deleted
