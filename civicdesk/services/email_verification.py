"""Email verification workflow.

A signed-up but unverified user asks for a code, receives it by email and
sends it back together with the address. Each request supersedes the
previous code, so only the newest one in the inbox works.

Security: Requests for unknown or already verified addresses do nothing
and look exactly like successful ones to the caller.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.models.user import User
from civicdesk.models.verification_code import CodePurpose, VerificationCode
from civicdesk.repositories.user_repository import UserRepository
from civicdesk.services.token_ledger import CodeNotFoundError, TokenLedger

logger = logging.getLogger(__name__)


class EmailAlreadyVerifiedError(Exception):
    """The account's email address is already verified."""


async def request_email_verification(
    *,
    db: AsyncSession,
    ledger: TokenLedger,
    email: str,
) -> VerificationCode | None:
    """Issue a fresh verification code for an unverified account.

    Args:
        db: Async database session.
        ledger: Token ledger bound to the same session.
        email: Address the user signed up with.

    Returns:
        The issued code, or None when there is nothing to verify (unknown
        address or already verified).

    Raises:
        CodeConflictError: If no unique code could be generated.
    """
    user = await UserRepository.get_by_email(db, email)
    if user is None or user.is_email_verified:
        logger.debug("Verification code not issued: no unverified account")
        return None

    return await ledger.issue(
        CodePurpose.EMAIL_VERIFICATION,
        subject_id=user.id,
        supersede=True,
    )


async def verify_email(
    *,
    db: AsyncSession,
    ledger: TokenLedger,
    email: str,
    code: str,
) -> User:
    """Redeem an email verification code and mark the address verified.

    The code must have been issued to the account behind ``email``; a
    valid code belonging to someone else is treated as unknown.

    Returns:
        The updated User.

    Raises:
        CodeNotFoundError: Unknown address, or no such code for it.
        CodeExpiredError: The code has expired.
        CodeAlreadyConsumedError: The code was already used.
        EmailAlreadyVerifiedError: Nothing left to verify.
    """
    user = await UserRepository.get_by_email(db, email)
    if user is None:
        raise CodeNotFoundError(CodePurpose.EMAIL_VERIFICATION)
    if user.is_email_verified:
        raise EmailAlreadyVerifiedError(str(user.id))

    redeemed = await ledger.redeem(
        CodePurpose.EMAIL_VERIFICATION,
        code,
        subject_id=user.id,
        bound_user_id=user.id,
    )

    verified_at = redeemed.consumed_at or datetime.now(UTC)
    updated = await UserRepository.update(db, user.id, email_verified=verified_at)
    logger.info("Email verified for user %s", user.id)
    return updated or user
