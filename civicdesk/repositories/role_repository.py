"""Repository for Role table operations."""

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.core.roles import ROLE_CATALOG, RoleName
from civicdesk.models.role import Role


class RoleRepository:
    """Stateless repository for Role table operations.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_name(db: AsyncSession, name: str) -> Role | None:
        """Fetch a role by its stable name.

        Args:
            db: Async database session.
            name: Role name (e.g. "admin").

        Returns:
            Role if found, None otherwise.
        """
        stmt = select(Role).where(Role.name == name)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_assignable(db: AsyncSession) -> list[Role]:
        """List the roles an administrator may assign (all but citizens).

        Args:
            db: Async database session.

        Returns:
            Roles ordered by name.
        """
        stmt = (
            select(Role)
            .where(Role.name != RoleName.USER.value)
            .order_by(Role.name)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def seed_catalog(db: AsyncSession) -> int:
        """Insert catalog roles that are missing from the table.

        Existing rows are left untouched, so the seed is idempotent.

        Args:
            db: Async database session.

        Returns:
            Number of inserted roles.
        """
        stmt = (
            insert(Role)
            .values(
                [
                    {
                        "name": d.name.value,
                        "label": d.label,
                        "is_municipal": d.is_municipal,
                    }
                    for d in ROLE_CATALOG
                ]
            )
            .on_conflict_do_nothing(index_elements=["name"])
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
