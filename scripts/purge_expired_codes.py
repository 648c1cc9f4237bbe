"""Purge expired verification codes.

Standalone maintenance script, meant to run from cron every few minutes.

Usage:
    python -m scripts.purge_expired_codes [--grace-minutes N]
"""

import argparse
import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.services.verification_cleanup import purge_expired_codes

logger = logging.getLogger(__name__)


async def run_purge(session: AsyncSession, grace_minutes: int | None) -> int:
    """Run the purge in one transaction and return the deleted count."""
    grace = timedelta(minutes=grace_minutes) if grace_minutes is not None else None
    deleted = await purge_expired_codes(session, grace=grace)
    await session.commit()
    return deleted


async def main(argv: list[str] | None = None) -> None:
    """CLI entry point: purge against the configured database."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from civicdesk.core.config import settings

    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--grace-minutes",
        type=int,
        default=None,
        help="Keep codes this long after expiry (default: CODE_CLEANUP_GRACE_MINUTES)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = create_async_engine(settings.database_url, echo=False)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as session:
        deleted = await run_purge(session, args.grace_minutes)

    await engine.dispose()

    logger.info("Purged %d expired verification code(s)", deleted)


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
