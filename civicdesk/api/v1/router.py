"""API v1 router aggregator.

All v1 endpoint routers are included here under /api/v1.
"""

from fastapi import APIRouter

from civicdesk.api.v1 import account_link, auth, reports, roles

router = APIRouter()

# =============================================================================
# Verification
# =============================================================================

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(
    account_link.router, prefix="/account-link", tags=["account-link"]
)

# =============================================================================
# Reports and roles
# =============================================================================

router.include_router(reports.router, prefix="/reports", tags=["reports"])
router.include_router(roles.router, prefix="/roles", tags=["roles"])
