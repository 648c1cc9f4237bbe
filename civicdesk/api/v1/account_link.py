"""Chat account linking endpoints.

Endpoints:
- POST /account-link/codes: chat bot requests a link code (X-Bot-Token)
- POST /account-link/redeem: signed-in user redeems a link code
- GET /account-link/status: whether the signed-in user is linked
- GET /account-link/channels/{channel_id}: chat bot asks who a chat account
  is linked to (X-Bot-Token)
"""

import logging

from fastapi import APIRouter, Depends, Request

from civicdesk.api.deps import CurrentPrincipal, DbSession, Ledger, verify_bot_token
from civicdesk.core.config import settings
from civicdesk.core.errors import (
    ConflictError,
    InternalError,
    UnauthorizedError,
    ValidationError,
)
from civicdesk.core.rate_limiting import limiter
from civicdesk.core.responses import DataResponse
from civicdesk.schemas.identity import (
    ChannelLinkResponse,
    LinkCodeRequest,
    LinkCodeResponse,
    LinkStatusResponse,
    RedeemLinkCodeRequest,
)
from civicdesk.services.account_link import (
    AccountLinkError,
    ChannelAlreadyLinkedError,
    UnknownUserError,
    UserAlreadyLinkedError,
    get_link_status,
    get_linked_user,
    issue_link_code,
    redeem_link_code,
)
from civicdesk.services.token_ledger import CodeConflictError, RedemptionError

logger = logging.getLogger(__name__)

router = APIRouter()

_INVALID_LINK_CODE_MSG = "Invalid or expired link code"


# ===================================================================
# POST /account-link/codes
# ===================================================================


@router.post(
    "/codes",
    status_code=201,
    dependencies=[Depends(verify_bot_token)],
)
async def create_link_code(
    body: LinkCodeRequest,
    db: DbSession,
    ledger: Ledger,
) -> DataResponse[LinkCodeResponse]:
    """Issue an account-link code for a chat account.

    Called by the chat bot, which shows the code to the person in the chat.
    Earlier unused codes for the same chat account stop working.
    """
    try:
        issued = await issue_link_code(
            db=db,
            ledger=ledger,
            channel_id=body.channel_id,
            channel_handle=body.channel_handle,
        )
    except ChannelAlreadyLinkedError as exc:
        raise ConflictError(
            code="CHANNEL_ALREADY_LINKED",
            message="This chat account is already linked",
        ) from exc
    except CodeConflictError as exc:
        raise InternalError("Could not issue a link code, please retry") from exc

    await db.commit()

    return DataResponse(
        data=LinkCodeResponse(code=issued.code, expires_at=issued.expires_at)
    )


# ===================================================================
# POST /account-link/redeem
# ===================================================================


@router.post("/redeem")
@limiter.limit(settings.rate_limit_code_redeem)
async def redeem_code(
    request: Request,  # noqa: ARG001
    body: RedeemLinkCodeRequest,
    principal: CurrentPrincipal,
    db: DbSession,
    ledger: Ledger,
) -> DataResponse[LinkStatusResponse]:
    """Redeem a link code and bind its chat account to the signed-in user.

    Redemption and binding commit together; any failure leaves both the
    code and the account unchanged.
    """
    try:
        user = await redeem_link_code(
            db=db,
            ledger=ledger,
            user_id=principal.id,
            code=body.code,
        )
    except UserAlreadyLinkedError as exc:
        raise ConflictError(
            code="USER_ALREADY_LINKED",
            message="A chat account is already linked to this user",
        ) from exc
    except ChannelAlreadyLinkedError as exc:
        raise ConflictError(
            code="CHANNEL_ALREADY_LINKED",
            message="This chat account is already linked",
        ) from exc
    except UnknownUserError as exc:
        raise UnauthorizedError() from exc
    except (RedemptionError, AccountLinkError) as exc:
        raise ValidationError(_INVALID_LINK_CODE_MSG) from exc

    await db.commit()

    return DataResponse(
        data=LinkStatusResponse(
            linked=True,
            channel_handle=user.channel_handle,
            linked_at=user.channel_linked_at,
        )
    )


# ===================================================================
# GET /account-link/status
# ===================================================================


@router.get("/status")
async def link_status(
    principal: CurrentPrincipal,
    db: DbSession,
) -> DataResponse[LinkStatusResponse]:
    """Return whether the signed-in user has a chat account linked."""
    try:
        status = await get_link_status(db=db, user_id=principal.id)
    except UnknownUserError as exc:
        raise UnauthorizedError() from exc

    return DataResponse(
        data=LinkStatusResponse(
            linked=status.linked,
            channel_handle=status.channel_handle,
            linked_at=status.linked_at,
        )
    )


# ===================================================================
# GET /account-link/channels/{channel_id}
# ===================================================================


@router.get(
    "/channels/{channel_id}",
    dependencies=[Depends(verify_bot_token)],
)
async def channel_link(
    channel_id: str,
    db: DbSession,
) -> DataResponse[ChannelLinkResponse]:
    """Return the user a chat account is linked to, for the chat bot."""
    user = await get_linked_user(db=db, channel_id=channel_id)
    if user is None:
        return DataResponse(data=ChannelLinkResponse(linked=False))

    return DataResponse(
        data=ChannelLinkResponse(
            linked=True,
            user_id=str(user.id),
            username=user.username,
        )
    )
