"""Static role catalog.

Every role the platform knows about, with its display label and whether its
holders are municipal staff. The database `roles` table is seeded from this
catalog; policy checks compare role names against RoleName values.
"""

from dataclasses import dataclass
from enum import Enum


class RoleName(str, Enum):
    """Stable role identifiers."""

    ADMIN = "admin"
    USER = "user"
    PR_OFFICER = "pr_officer"
    TECH_OFFICER = "tech_officer"
    EXTERNAL_MAINTAINER = "external_maintainer"


@dataclass(frozen=True)
class RoleDefinition:
    """Catalog entry for one role.

    Attributes:
        name: Stable identifier.
        label: Display label.
        is_municipal: Whether holders are municipal staff.
    """

    name: RoleName
    label: str
    is_municipal: bool


ROLE_CATALOG: tuple[RoleDefinition, ...] = (
    RoleDefinition(RoleName.USER, "User", is_municipal=False),
    RoleDefinition(RoleName.ADMIN, "Admin", is_municipal=True),
    RoleDefinition(RoleName.PR_OFFICER, "PR Officer", is_municipal=True),
    RoleDefinition(RoleName.TECH_OFFICER, "Technical Officer", is_municipal=True),
    RoleDefinition(
        RoleName.EXTERNAL_MAINTAINER, "External Maintainer", is_municipal=True
    ),
)

_BY_NAME: dict[str, RoleDefinition] = {d.name.value: d for d in ROLE_CATALOG}

# Roles an administrator may assign to staff accounts (everything but citizens)
ASSIGNABLE_ROLE_NAMES: frozenset[str] = frozenset(
    d.name.value for d in ROLE_CATALOG if d.name is not RoleName.USER
)


def get_role_definition(name: str) -> RoleDefinition | None:
    """Look up a catalog entry by role name.

    Args:
        name: Role name (e.g. "pr_officer").

    Returns:
        The RoleDefinition, or None for unknown names.
    """
    return _BY_NAME.get(name)


def is_municipal_role(name: str | None) -> bool:
    """Check whether a role name belongs to municipal staff.

    Unknown names and accounts without a role are not municipal.
    """
    if name is None:
        return False
    definition = get_role_definition(name)
    return definition is not None and definition.is_municipal
