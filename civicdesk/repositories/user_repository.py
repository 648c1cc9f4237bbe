"""Repository for User read and update operations.

Accounts are created by the platform's registration flow; this service only
looks users up, marks emails verified and binds chat channels.
"""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.models.user import User

# Fields that may be updated via UserRepository.update().
# Security: Never add 'id', 'email', 'role_id' or the channel columns.
# - role_id: role changes belong to the admin flow, not mass assignment
# - channel_*: only bind_channel() may set them, after a code redemption
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "first_name",
        "last_name",
        "email_verified",
    }
)


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email.strip().lower())
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_channel_id(db: AsyncSession, channel_id: str) -> User | None:
        """Fetch the user a chat channel is bound to.

        Args:
            db: Async database session.
            channel_id: External chat account id.

        Returns:
            User if the channel is linked, None otherwise.
        """
        stmt = select(User).where(User.channel_id == channel_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def update(
        db: AsyncSession,
        user_id: uuid.UUID,
        **kwargs: str | datetime | None,
    ) -> User | None:
        """Update user fields.

        Only fields in _UPDATABLE_FIELDS are allowed. Unknown field names
        raise ValueError.

        Args:
            db: Async database session.
            user_id: UUID of the user to update.
            **kwargs: Field names and values to update.

        Returns:
            Updated User if found, None if user does not exist.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        user = await db.get(User, user_id)
        if user is None:
            return None

        for field, value in kwargs.items():
            setattr(user, field, value)

        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def bind_channel(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        channel_id: str,
        channel_handle: str | None,
        linked_at: datetime,
    ) -> User | None:
        """Bind an external chat channel to a user.

        Separated from update() so a channel can only be attached through a
        redeemed account-link code.

        Args:
            db: Async database session.
            user_id: UUID of the user.
            channel_id: External chat account id.
            channel_handle: External chat handle.
            linked_at: Link timestamp.

        Returns:
            Updated User if found, None if user does not exist.

        Raises:
            sqlalchemy.exc.IntegrityError: If the channel is already bound
                to another user.
        """
        user = await db.get(User, user_id)
        if user is None:
            return None
        user.channel_id = channel_id
        user.channel_handle = channel_handle
        user.channel_linked_at = linked_at
        await db.flush()
        await db.refresh(user)
        return user
