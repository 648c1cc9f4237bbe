"""Role model - municipal and citizen roles.

Rows mirror the static catalog in civicdesk.core.roles. Derived flags are
computed from the name, never stored.
"""

import uuid

from sqlalchemy import Boolean, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from civicdesk.core.roles import RoleName
from civicdesk.models.base import Base


class Role(Base):
    """A named role a user holds.

    Attributes:
        id: UUID primary key.
        name: Stable identifier used by policy checks (e.g. "pr_officer").
        label: Display label.
        is_municipal: Whether holders are municipal staff.
    """

    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    name: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
    )
    label: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    is_municipal: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
    )

    @property
    def is_admin(self) -> bool:
        return self.name == RoleName.ADMIN

    @property
    def is_citizen(self) -> bool:
        return self.name == RoleName.USER

    @property
    def is_pr_officer(self) -> bool:
        return self.name == RoleName.PR_OFFICER

    @property
    def is_tech_officer(self) -> bool:
        return self.name == RoleName.TECH_OFFICER

    @property
    def is_external_maintainer(self) -> bool:
        return self.name == RoleName.EXTERNAL_MAINTAINER
