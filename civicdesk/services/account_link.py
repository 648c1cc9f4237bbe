"""Chat account linking workflow.

1. The chat bot asks for a code on behalf of a chat account (channel) that
   is not linked yet and shows it to the person in the chat.
2. That person, signed in to the web app, submits the code.
3. The code is redeemed and the channel is bound to their account in the
   same transaction.

A channel links to at most one user and a user to at most one channel.
Both are checked before the code is consumed; the unique constraint on
users.channel_id settles the remaining race.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.models.user import User
from civicdesk.models.verification_code import CodePurpose, VerificationCode
from civicdesk.repositories.user_repository import UserRepository
from civicdesk.services.token_ledger import TokenLedger

logger = logging.getLogger(__name__)


class AccountLinkError(Exception):
    """Base class for account linking failures."""


class ChannelAlreadyLinkedError(AccountLinkError):
    """The chat account is already bound to a user."""


class UserAlreadyLinkedError(AccountLinkError):
    """The user already has a chat account bound."""


class UnknownUserError(AccountLinkError):
    """The redeeming user does not exist (deleted account)."""


@dataclass(frozen=True)
class LinkStatus:
    """Whether a user has a chat account bound.

    Attributes:
        linked: True once a channel is bound.
        channel_handle: Chat handle captured at link time.
        linked_at: When the channel was bound.
    """

    linked: bool
    channel_handle: str | None = None
    linked_at: datetime | None = None


async def issue_link_code(
    *,
    db: AsyncSession,
    ledger: TokenLedger,
    channel_id: str,
    channel_handle: str | None,
) -> VerificationCode:
    """Issue an account-link code for an unlinked chat account.

    Earlier unconsumed codes of the same channel are superseded.

    Raises:
        ChannelAlreadyLinkedError: If the channel is already bound.
        CodeConflictError: If no unique code could be generated.
    """
    if await UserRepository.get_by_channel_id(db, channel_id) is not None:
        raise ChannelAlreadyLinkedError(channel_id)

    return await ledger.issue(
        CodePurpose.ACCOUNT_LINK,
        channel_id=channel_id,
        channel_handle=channel_handle,
        supersede=True,
    )


async def redeem_link_code(
    *,
    db: AsyncSession,
    ledger: TokenLedger,
    user_id: uuid.UUID,
    code: str,
) -> User:
    """Redeem an account-link code and bind its channel to the user.

    Must run inside the caller's transaction: if binding fails after the
    code was consumed, the rollback restores the code.

    Args:
        db: Async database session.
        ledger: Token ledger bound to the same session.
        user_id: Signed-in user redeeming the code.
        code: Code shown by the chat bot.

    Returns:
        The updated User.

    Raises:
        UnknownUserError: If the user does not exist.
        UserAlreadyLinkedError: If the user already has a channel.
        ChannelAlreadyLinkedError: If the code's channel was bound to
            someone else in the meantime.
        RedemptionError: If the code is unknown, expired or used.
    """
    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        raise UnknownUserError(str(user_id))
    if user.is_channel_linked:
        raise UserAlreadyLinkedError(str(user_id))

    # Ownership is checked on the peeked record so a refused link leaves
    # the code unconsumed. Spent or stale codes fall through to redeem.
    pending = await ledger.peek(CodePurpose.ACCOUNT_LINK, code)
    if pending.channel_id is None:
        msg = f"Account-link code {pending.id} has no channel"
        raise AccountLinkError(msg)
    if ledger.is_live(pending):
        owner = await UserRepository.get_by_channel_id(db, pending.channel_id)
        if owner is not None and owner.id != user_id:
            raise ChannelAlreadyLinkedError(pending.channel_id)

    redeemed = await ledger.redeem(
        CodePurpose.ACCOUNT_LINK,
        code,
        bound_user_id=user_id,
    )

    try:
        updated = await UserRepository.bind_channel(
            db,
            user_id,
            channel_id=redeemed.channel_id,
            channel_handle=redeemed.channel_handle,
            linked_at=redeemed.consumed_at or redeemed.issued_at,
        )
    except IntegrityError as exc:
        raise ChannelAlreadyLinkedError(redeemed.channel_id) from exc

    logger.info("Linked chat channel to user %s", user_id)
    return updated or user


async def get_link_status(*, db: AsyncSession, user_id: uuid.UUID) -> LinkStatus:
    """Report whether a user has a chat account bound.

    Raises:
        UnknownUserError: If the user does not exist.
    """
    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        raise UnknownUserError(str(user_id))
    if not user.is_channel_linked:
        return LinkStatus(linked=False)
    return LinkStatus(
        linked=True,
        channel_handle=user.channel_handle,
        linked_at=user.channel_linked_at,
    )


async def get_linked_user(*, db: AsyncSession, channel_id: str) -> User | None:
    """Return the user a chat account is bound to, if any.

    Used by the chat bot to decide whether to offer linking or greet a
    known user.
    """
    return await UserRepository.get_by_channel_id(db, channel_id)
