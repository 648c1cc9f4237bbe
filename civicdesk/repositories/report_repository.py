"""Repository for Report reads.

Reports are written by the reporting module; here they are only loaded so
the visibility filter can narrow them per principal.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.models.report import Report


class ReportRepository:
    """Stateless repository for Report table reads.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def list_all(db: AsyncSession) -> list[Report]:
        """Load every report, newest first, with its category.

        Args:
            db: Async database session.

        Returns:
            Reports ordered by created_at descending.
        """
        stmt = select(Report).order_by(Report.created_at.desc(), Report.id)
        result = await db.execute(stmt)
        return list(result.scalars().unique().all())

    @staticmethod
    async def get_by_id(db: AsyncSession, report_id: uuid.UUID) -> Report | None:
        """Fetch a report by primary key.

        Args:
            db: Async database session.
            report_id: UUID primary key.

        Returns:
            Report if found, None otherwise.
        """
        return await db.get(Report, report_id)
