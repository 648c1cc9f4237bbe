"""Email sending via Resend API.

Plain-text delivery of email verification codes. Delivery failures are
logged and swallowed: the code stays valid and the user can ask for a new
one.
"""

import logging

import httpx

from civicdesk.core.config import settings

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


async def send_verification_code_email(
    *, to_email: str, code: str, ttl_minutes: int
) -> None:
    """Send an email verification code via Resend.

    Args:
        to_email: Recipient email address.
        code: Plain verification code.
        ttl_minutes: Code lifetime, shown to the user.
    """
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={
                    "Authorization": f"Bearer {settings.resend_api_key.get_secret_value()}",
                },
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": "Your verification code",
                    "text": (
                        f"Your verification code is: {code}\n\n"
                        f"It expires in {ttl_minutes} minutes. "
                        "If you didn't request this, you can safely ignore this email."
                    ),
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except httpx.HTTPError:
        logger.warning("Failed to send verification code email", exc_info=True)
