"""Request/response schemas for verification, account linking and roles.

All schemas use ConfigDict(extra="forbid") to reject unexpected fields.
Code values only ever appear in responses to the chat bot; email codes go
out by email.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from civicdesk.models.role import Role
from civicdesk.models.user import User

# Codes are short; bound the input before it reaches the ledger
_MAX_CODE_INPUT = 32


# =============================================================================
# Email verification
# =============================================================================


class VerificationCodeRequest(BaseModel):
    """Request body for POST /auth/verification-code."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class VerifyEmailRequest(BaseModel):
    """Request body for POST /auth/verify-email."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    code: str = Field(min_length=1, max_length=_MAX_CODE_INPUT)


class UserResponse(BaseModel):
    """Current user, as returned after verification.

    Attributes:
        id: UUID as string.
        email: Email address.
        username: Login name.
        role: Role name, or None.
        email_verified: Whether the email is verified.
        channel_linked: Whether a chat account is bound.
    """

    model_config = ConfigDict(extra="forbid")

    id: str
    email: str
    username: str
    role: str | None = None
    email_verified: bool
    channel_linked: bool

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=str(user.id),
            email=user.email,
            username=user.username,
            role=user.role.name if user.role is not None else None,
            email_verified=user.is_email_verified,
            channel_linked=user.is_channel_linked,
        )


# =============================================================================
# Account linking
# =============================================================================


class LinkCodeRequest(BaseModel):
    """Request body for POST /account-link/codes (chat bot)."""

    model_config = ConfigDict(extra="forbid")

    channel_id: str = Field(min_length=1, max_length=64)
    channel_handle: str | None = Field(default=None, max_length=255)


class LinkCodeResponse(BaseModel):
    """Issued account-link code, returned to the chat bot."""

    model_config = ConfigDict(extra="forbid")

    code: str
    expires_at: datetime


class RedeemLinkCodeRequest(BaseModel):
    """Request body for POST /account-link/redeem."""

    model_config = ConfigDict(extra="forbid")

    code: str = Field(min_length=1, max_length=_MAX_CODE_INPUT)


class LinkStatusResponse(BaseModel):
    """Response for GET /account-link/status."""

    model_config = ConfigDict(extra="forbid")

    linked: bool
    channel_handle: str | None = None
    linked_at: datetime | None = None


class ChannelLinkResponse(BaseModel):
    """Response for GET /account-link/channels/{channel_id} (chat bot)."""

    model_config = ConfigDict(extra="forbid")

    linked: bool
    user_id: str | None = None
    username: str | None = None


# =============================================================================
# Roles
# =============================================================================


class RoleResponse(BaseModel):
    """Role entry for GET /roles."""

    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    label: str
    is_municipal: bool

    @classmethod
    def from_role(cls, role: Role) -> "RoleResponse":
        return cls(
            id=str(role.id),
            name=role.name,
            label=role.label,
            is_municipal=role.is_municipal,
        )
