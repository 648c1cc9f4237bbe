"""Email verification endpoints.

Endpoints:
- POST /auth/verification-code: (re)send an email verification code
- POST /auth/verify-email: redeem the code, start a session
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Request
from starlette.responses import Response

from civicdesk.api.deps import DbSession, Ledger
from civicdesk.core.auth import create_jwt, set_auth_cookie
from civicdesk.core.config import settings
from civicdesk.core.email import send_verification_code_email
from civicdesk.core.errors import ValidationError
from civicdesk.core.rate_limiting import limiter
from civicdesk.core.responses import DataResponse
from civicdesk.schemas.identity import (
    UserResponse,
    VerificationCodeRequest,
    VerifyEmailRequest,
)
from civicdesk.services.email_verification import (
    EmailAlreadyVerifiedError,
    request_email_verification,
    verify_email,
)
from civicdesk.services.token_ledger import CodeConflictError, RedemptionError

logger = logging.getLogger(__name__)

router = APIRouter()

_INVALID_CODE_MSG = "Invalid or expired verification code"
_CODE_SENT_MSG = "If the account needs verification, a code has been sent"


# ===================================================================
# POST /auth/verification-code
# ===================================================================


@router.post("/verification-code")
@limiter.limit(settings.rate_limit_code_request)
async def request_verification_code(
    request: Request,  # noqa: ARG001
    body: VerificationCodeRequest,
    background_tasks: BackgroundTasks,
    db: DbSession,
    ledger: Ledger,
) -> DataResponse[dict]:
    """Send a fresh email verification code.

    Always returns the same message whether or not the address exists or
    is already verified (prevents email enumeration). The email is sent as
    a background task so response time does not depend on it.
    """
    email = body.email.strip().lower()

    try:
        issued = await request_email_verification(db=db, ledger=ledger, email=email)
    except CodeConflictError:
        # Reported in logs only; the answer must not reveal the account.
        # Rolling back keeps the earlier code the supersede step deleted.
        await db.rollback()
        return DataResponse(data={"message": _CODE_SENT_MSG})

    await db.commit()

    if issued is not None:
        background_tasks.add_task(
            send_verification_code_email,
            to_email=email,
            code=issued.code,
            ttl_minutes=settings.email_verification_ttl_minutes,
        )

    return DataResponse(data={"message": _CODE_SENT_MSG})


# ===================================================================
# POST /auth/verify-email
# ===================================================================


@router.post("/verify-email")
@limiter.limit(settings.rate_limit_code_redeem)
async def verify_email_code(
    request: Request,  # noqa: ARG001
    body: VerifyEmailRequest,
    response: Response,
    db: DbSession,
    ledger: Ledger,
) -> DataResponse[UserResponse]:
    """Redeem an email verification code and sign the user in.

    Security: Unknown address, wrong code, expired code, reused code and
    already verified account all produce the same 400.
    """
    try:
        user = await verify_email(
            db=db,
            ledger=ledger,
            email=body.email,
            code=body.code,
        )
    except (RedemptionError, EmailAlreadyVerifiedError) as exc:
        raise ValidationError(_INVALID_CODE_MSG) from exc

    await db.commit()

    jwt_token = create_jwt(
        user_id=str(user.id),
        secret=settings.auth_secret.get_secret_value(),
    )
    set_auth_cookie(response, jwt_token)

    return DataResponse(data=UserResponse.from_user(user))
