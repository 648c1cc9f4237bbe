"""Shared dependencies for API endpoints.

Principal resolution, the route-level role gate, the verification code
ledger and chat-bot authentication.

The principal is resolved once per request from the session cookie and
passed explicitly; nothing below keeps an ambient "current user".
"""

import logging
import secrets
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.core.access_policy import authorize
from civicdesk.core.auth import decode_session_token
from civicdesk.core.config import settings
from civicdesk.core.database import get_db
from civicdesk.core.errors import ForbiddenError, UnauthorizedError
from civicdesk.core.principal import Principal
from civicdesk.repositories.user_repository import UserRepository
from civicdesk.services.code_store import (
    CodeStore,
    SqlCodeStore,
    get_memory_code_store,
)
from civicdesk.services.token_ledger import TokenLedger

logger = logging.getLogger(__name__)

# Reusable type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]


# =============================================================================
# Principal
# =============================================================================


async def get_optional_principal(
    request: Request,
    db: DbSession,
) -> Principal | None:
    """Resolve the principal from the session cookie, if any.

    Security: Every failure (no cookie, bad token, deleted account) is
    treated the same way: the request is anonymous.

    Args:
        request: HTTP request (injected by FastAPI).
        db: Database session (injected).

    Returns:
        Principal for a signed-in user, None for guests.
    """
    token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        return None

    user_id = decode_session_token(token)
    if user_id is None:
        return None

    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        return None
    return Principal.from_user(user)


OptionalPrincipal = Annotated[Principal | None, Depends(get_optional_principal)]


async def get_current_principal(principal: OptionalPrincipal) -> Principal:
    """Require a signed-in principal.

    Raises:
        UnauthorizedError: 401 for guests.
    """
    if principal is None:
        raise UnauthorizedError()
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def require_roles(
    *role_names: str | Enum,
) -> Callable[..., Awaitable[Principal | None]]:
    """Build a dependency that gates a route on the principal's role.

    Attach at registration so the check runs before the handler:

        @router.get("", dependencies=[Depends(require_roles(RoleName.ADMIN))])

    With no role names the route is unrestricted.

    Security: Both denial reasons (no principal/role, wrong role) produce
    the same 403; the reason is only logged.

    Args:
        *role_names: Role names the route accepts.

    Returns:
        Dependency callable returning the (possibly None) principal.
    """
    required = tuple(role_names)

    async def _require_roles(principal: OptionalPrincipal) -> Principal | None:
        role = principal.role if principal is not None else None
        decision = authorize(required, role)
        if not decision:
            logger.info(
                "Access denied: %s",
                decision.reason.value if decision.reason else "unknown",
                extra={"principal_id": str(principal.id) if principal else None},
            )
            raise ForbiddenError()
        return principal

    return _require_roles


# =============================================================================
# Verification code ledger
# =============================================================================


def get_code_store(db: DbSession) -> CodeStore:
    """Select the code store backend from settings.

    "memory" is for single-process local runs; codes vanish on restart.
    """
    if settings.code_store_backend == "memory":
        return get_memory_code_store()
    return SqlCodeStore(db)


def get_token_ledger(
    store: Annotated[CodeStore, Depends(get_code_store)],
) -> TokenLedger:
    """Build a ledger over the request's code store."""
    return TokenLedger(store)


Ledger = Annotated[TokenLedger, Depends(get_token_ledger)]


# =============================================================================
# Chat-bot authentication
# =============================================================================


def verify_bot_token(
    x_bot_token: Annotated[str | None, Header()] = None,
) -> None:
    """Authenticate the chat bot by its shared secret.

    Security: Constant-time comparison. An unset LINK_BOT_TOKEN disables
    the bot endpoints entirely instead of accepting an empty header.

    Raises:
        UnauthorizedError: 401 for a missing or wrong token.
    """
    expected = settings.link_bot_token.get_secret_value()
    if not expected or not x_bot_token:
        raise UnauthorizedError()
    if not secrets.compare_digest(x_bot_token.encode(), expected.encode()):
        raise UnauthorizedError()


BotAuth = Annotated[None, Depends(verify_bot_token)]
