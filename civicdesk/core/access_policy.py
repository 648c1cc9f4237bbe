"""Endpoint-level access policy.

Binary role gate evaluated before any handler logic runs. Routes declare the
role names they accept when they are registered (see
civicdesk.api.deps.require_roles); this module only makes the decision.

Rules, in order:
1. No requirement declared -> allowed. Absence of a requirement means
   "no role restriction", not "deny all".
2. Requirement declared, no principal or no role -> denied
   (NO_PRINCIPAL_OR_ROLE).
3. Role not among the required names -> denied (ROLE_NOT_PERMITTED).
4. Otherwise allowed.

Both denial reasons map to the same client-visible 403; the reason exists
for logs and tests only.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from civicdesk.models.role import Role


class DenialReason(str, Enum):
    """Why authorize() refused an action."""

    NO_PRINCIPAL_OR_ROLE = "no_principal_or_role"
    ROLE_NOT_PERMITTED = "role_not_permitted"


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of an authorization check.

    Attributes:
        allowed: Whether the action may proceed.
        reason: Denial reason; None when allowed.
    """

    allowed: bool
    reason: DenialReason | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOWED = AccessDecision(allowed=True)


def _as_name(value: str | Enum) -> str:
    # RoleName members hash by member name, so sets must hold plain strings
    return value.value if isinstance(value, Enum) else value


def _role_name(principal_role: str | Role | None) -> str | None:
    if principal_role is None:
        return None
    if isinstance(principal_role, str):
        return _as_name(principal_role) or None
    if principal_role.name is None:
        return None
    return _as_name(principal_role.name) or None


def authorize(
    required_roles: Iterable[str] | None,
    principal_role: str | Role | None,
) -> AccessDecision:
    """Decide whether a principal's role satisfies a route requirement.

    Pure function: no I/O, no mutation.

    Args:
        required_roles: Role names the route accepts. None or empty means
            the route is unrestricted.
        principal_role: The principal's role, as a name or a Role row.
            None when the request is anonymous or the account has no role.

    Returns:
        AccessDecision.

    Examples:
        >>> authorize([], None).allowed
        True
        >>> authorize(["admin"], "user").reason
        <DenialReason.ROLE_NOT_PERMITTED: 'role_not_permitted'>
    """
    required = frozenset(_as_name(r) for r in required_roles or ())
    if not required:
        return ALLOWED

    name = _role_name(principal_role)
    if name is None:
        return AccessDecision(
            allowed=False, reason=DenialReason.NO_PRINCIPAL_OR_ROLE
        )

    if name not in required:
        return AccessDecision(allowed=False, reason=DenialReason.ROLE_NOT_PERMITTED)

    return ALLOWED
