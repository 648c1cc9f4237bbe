"""Insert catalog roles missing from the roles table.

Migration 001 seeds the catalog once; run this after adding a role to
civicdesk.core.roles. Existing rows are left untouched.

Usage:
    python -m scripts.seed_roles
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.repositories.role_repository import RoleRepository

logger = logging.getLogger(__name__)


async def run_seed(session: AsyncSession) -> int:
    """Seed in one transaction and return the number of inserted roles."""
    inserted = await RoleRepository.seed_catalog(session)
    await session.commit()
    return inserted


async def main() -> None:
    """CLI entry point: seed against the configured database."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from civicdesk.core.config import settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = create_async_engine(settings.database_url, echo=False)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as session:
        inserted = await run_seed(session)

    await engine.dispose()

    logger.info("Inserted %d catalog role(s)", inserted)


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
