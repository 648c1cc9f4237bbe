"""Role catalog endpoint.

Endpoints:
- GET /roles: roles an administrator may assign (admin only)
"""

from fastapi import APIRouter, Depends

from civicdesk.api.deps import DbSession, require_roles
from civicdesk.core.responses import DataResponse
from civicdesk.core.roles import RoleName
from civicdesk.repositories.role_repository import RoleRepository
from civicdesk.schemas.identity import RoleResponse

router = APIRouter()


@router.get("", dependencies=[Depends(require_roles(RoleName.ADMIN))])
async def list_roles(db: DbSession) -> DataResponse[list[RoleResponse]]:
    """List municipal-assignable roles (every role except citizen)."""
    roles = await RoleRepository.list_assignable(db)
    return DataResponse(data=[RoleResponse.from_role(r) for r in roles])
