"""Create identity, report and verification code tables; seed roles.

Revision ID: 001_identity_tables
Revises: 000_enable_extensions
Create Date: 2025-03-10

- roles: static catalog, seeded here (mirrors civicdesk.core.roles)
- users: accounts with email verification and chat channel binding
- categories, reports: read by the visibility filter
- verification_codes: single-use codes; a value is unique among the
  unconsumed codes of its purpose (partial unique index)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_identity_tables"
down_revision: str | None = "000_enable_extensions"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def upgrade() -> None:
    # =========================================================================
    # Roles
    # =========================================================================
    op.create_table(
        "roles",
        _uuid_pk(),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("label", sa.String(100), nullable=False),
        sa.Column(
            "is_municipal",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
    )

    op.execute(
        """
        INSERT INTO roles (name, label, is_municipal)
        VALUES
            ('user', 'User', false),
            ('admin', 'Admin', true),
            ('pr_officer', 'PR Officer', true),
            ('tech_officer', 'Technical Officer', true),
            ('external_maintainer', 'External Maintainer', true)
        ON CONFLICT (name) DO NOTHING
    """
    )

    # =========================================================================
    # Users
    # =========================================================================
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column(
            "role_id",
            UUID(as_uuid=True),
            sa.ForeignKey("roles.id"),
            nullable=False,
        ),
        sa.Column("office_id", UUID(as_uuid=True), nullable=True),
        sa.Column("email_verified", sa.DateTime(timezone=True), nullable=True),
        # One chat account per user and one user per chat account
        sa.Column("channel_id", sa.String(64), nullable=True, unique=True),
        sa.Column("channel_handle", sa.String(255), nullable=True),
        sa.Column("channel_linked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    # =========================================================================
    # Categories and reports
    # =========================================================================
    op.create_table(
        "categories",
        _uuid_pk(),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
    )

    op.create_table(
        "reports",
        _uuid_pk(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            UUID(as_uuid=True),
            sa.ForeignKey("categories.id"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'in_progress', 'resolved', 'rejected', 'assigned')",
            name="ck_report_status",
        ),
    )

    # =========================================================================
    # Verification codes
    # =========================================================================
    op.create_table(
        "verification_codes",
        _uuid_pk(),
        sa.Column("purpose", sa.String(32), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("subject_id", UUID(as_uuid=True), nullable=True),
        sa.Column("channel_id", sa.String(64), nullable=True),
        sa.Column("channel_handle", sa.String(255), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "consumed",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("bound_user_id", UUID(as_uuid=True), nullable=True),
        sa.CheckConstraint(
            "purpose IN ('email_verification', 'account_link')",
            name="ck_verification_codes_purpose",
        ),
    )
    # Issue retries on a collision with a live code; consumed rows keep
    # their value until the cleanup sweep and do not block reuse.
    op.create_index(
        "uq_verification_codes_live_code",
        "verification_codes",
        ["purpose", "code"],
        unique=True,
        postgresql_where="consumed = false",
    )
    op.create_index(
        "ix_verification_codes_subject_id", "verification_codes", ["subject_id"]
    )
    op.create_index(
        "ix_verification_codes_expires_at", "verification_codes", ["expires_at"]
    )


def downgrade() -> None:
    op.drop_index(
        "ix_verification_codes_expires_at", table_name="verification_codes"
    )
    op.drop_index(
        "ix_verification_codes_subject_id", table_name="verification_codes"
    )
    op.drop_index(
        "uq_verification_codes_live_code", table_name="verification_codes"
    )
    op.drop_table("verification_codes")
    op.drop_table("reports")
    op.drop_table("categories")
    op.drop_table("users")
    op.drop_table("roles")
