"""Verification code model - single-use, time-limited codes.

Stores email verification codes and chat account-link codes. A code value
is unique among the unconsumed codes of its purpose (partial unique index);
consumed rows keep their value until the cleanup sweep removes them.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Index, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from civicdesk.models.base import Base


class CodePurpose(str, Enum):
    """What a verification code is issued for."""

    EMAIL_VERIFICATION = "email_verification"
    ACCOUNT_LINK = "account_link"


class VerificationCode(Base):
    """Single-use verification code.

    Attributes:
        id: UUID primary key.
        purpose: CodePurpose value.
        code: Short opaque code value sent to the user.
        subject_id: Account being verified (email verification only).
        channel_id: External chat account id (account link only).
        channel_handle: External chat handle (account link only).
        issued_at: When the code was issued.
        expires_at: issued_at + purpose TTL.
        consumed: Set true exactly once, on successful redemption.
        consumed_at: When the code was redeemed.
        bound_user_id: User who redeemed an account-link code.
    """

    __tablename__ = "verification_codes"
    __table_args__ = (
        CheckConstraint(
            "purpose IN ('email_verification', 'account_link')",
            name="ck_verification_codes_purpose",
        ),
        Index(
            "uq_verification_codes_live_code",
            "purpose",
            "code",
            unique=True,
            postgresql_where=text("consumed = false"),
        ),
        Index("ix_verification_codes_subject_id", "subject_id"),
        Index("ix_verification_codes_expires_at", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    purpose: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )
    subject_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )
    channel_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    channel_handle: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    issued_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        nullable=False,
    )
    consumed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
    )
    consumed_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
    bound_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )

    def is_expired(self, now: datetime) -> bool:
        """Check whether the code is past its expiry at ``now``."""
        return now > self.expires_at
