"""User model - accounts that reports and codes refer to.

Holds the pieces of the account this service reads or writes: the role used
by the access policy, the email verification timestamp, and the external
chat channel bound through account linking.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from civicdesk.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from civicdesk.models.role import Role


class User(Base, TimestampMixin):
    """User account.

    Attributes:
        id: UUID primary key.
        email: Unique email address (lowercase).
        username: Unique login name.
        first_name: Given name.
        last_name: Family name.
        role_id: FK to roles.
        office_id: Municipal office the user belongs to (staff only).
        email_verified: Timestamp when email was verified. NULL = unverified.
        channel_id: External chat account id bound by account linking.
        channel_handle: External chat handle captured at link time.
        channel_linked_at: When the chat account was bound.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    username: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
    )
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    role_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("roles.id"),
        nullable=False,
    )
    office_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )
    email_verified: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
    channel_id: Mapped[str | None] = mapped_column(
        String(64),
        unique=True,
        nullable=True,
    )
    channel_handle: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    channel_linked_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    role: Mapped["Role"] = relationship("Role", lazy="joined")

    @property
    def is_email_verified(self) -> bool:
        return self.email_verified is not None

    @property
    def is_channel_linked(self) -> bool:
        return self.channel_id is not None
