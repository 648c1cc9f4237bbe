"""The acting principal of a request.

Built once per request from the authenticated user and passed explicitly to
the access policy and the report visibility filter. There is no ambient
"current user" anywhere in the service.
"""

import uuid
from dataclasses import dataclass

from civicdesk.models.role import Role
from civicdesk.models.user import User


@dataclass(frozen=True)
class Principal:
    """Authenticated actor.

    Attributes:
        id: User id; compared against report owners.
        role: Role held by the user. None when the account has no role row.
        office_id: Municipal office for staff members.
    """

    id: uuid.UUID
    role: Role | None
    office_id: uuid.UUID | None = None

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        """Build a principal from a loaded User row."""
        return cls(id=user.id, role=user.role, office_id=user.office_id)

    @property
    def role_name(self) -> str | None:
        return self.role.name if self.role is not None else None
