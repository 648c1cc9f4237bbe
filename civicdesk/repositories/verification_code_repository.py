"""Repository for VerificationCode table operations.

Single-use codes keyed by (purpose, code). Redemption is one conditional
UPDATE guarded by ``consumed = false`` so concurrent redeemers are
serialized by the database, never by a read followed by a write.
"""

import uuid
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.models.verification_code import VerificationCode


class VerificationCodeRepository:
    """Stateless repository for VerificationCode table operations.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def create(db: AsyncSession, record: VerificationCode) -> VerificationCode:
        """Insert a new code.

        Args:
            db: Async database session.
            record: Fully populated (transient) VerificationCode.

        Returns:
            The persisted VerificationCode.

        Raises:
            sqlalchemy.exc.IntegrityError: If an unconsumed code with the
                same purpose and value already exists.
        """
        db.add(record)
        await db.flush()
        return record

    @staticmethod
    async def get_by_code(
        db: AsyncSession,
        *,
        purpose: str,
        code: str,
    ) -> VerificationCode | None:
        """Look up a code by value.

        Several rows may share a value once earlier ones are consumed; the
        unconsumed row wins, then the most recently issued one.

        Args:
            db: Async database session.
            purpose: CodePurpose value.
            code: Code value.

        Returns:
            VerificationCode if found, None otherwise.
        """
        stmt = (
            select(VerificationCode)
            .where(
                VerificationCode.purpose == purpose,
                VerificationCode.code == code,
            )
            .order_by(
                VerificationCode.consumed.asc(),
                VerificationCode.issued_at.desc(),
            )
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def consume(
        db: AsyncSession,
        *,
        purpose: str,
        code: str,
        now: datetime,
        subject_id: uuid.UUID | None = None,
        bound_user_id: uuid.UUID | None = None,
    ) -> VerificationCode | None:
        """Atomically mark a live code as consumed.

        Compare-and-set on ``consumed``: the row is updated only if it is
        still unconsumed and unexpired at ``now`` (and bound to
        ``subject_id`` when one is given). Exactly one of any number of
        concurrent callers gets the row back.

        Args:
            db: Async database session.
            purpose: CodePurpose value.
            code: Code value.
            now: Redemption time.
            subject_id: Required subject binding, if any.
            bound_user_id: User id to record on the code.

        Returns:
            The updated VerificationCode, or None if no live row matched.
        """
        conditions = [
            VerificationCode.purpose == purpose,
            VerificationCode.code == code,
            VerificationCode.consumed.is_(False),
            VerificationCode.expires_at >= now,
        ]
        if subject_id is not None:
            conditions.append(VerificationCode.subject_id == subject_id)

        values: dict[str, object] = {"consumed": True, "consumed_at": now}
        if bound_user_id is not None:
            values["bound_user_id"] = bound_user_id

        stmt = (
            update(VerificationCode)
            .where(*conditions)
            .values(**values)
            .returning(VerificationCode)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def delete_unconsumed(
        db: AsyncSession,
        *,
        purpose: str,
        subject_id: uuid.UUID | None = None,
        channel_id: str | None = None,
    ) -> int:
        """Delete the unconsumed codes of one subject or channel (supersede).

        Args:
            db: Async database session.
            purpose: CodePurpose value.
            subject_id: Subject whose codes are superseded.
            channel_id: Channel whose codes are superseded.

        Returns:
            Number of deleted rows.
        """
        if subject_id is None and channel_id is None:
            return 0

        stmt = delete(VerificationCode).where(
            VerificationCode.purpose == purpose,
            VerificationCode.consumed.is_(False),
        )
        if subject_id is not None:
            stmt = stmt.where(VerificationCode.subject_id == subject_id)
        if channel_id is not None:
            stmt = stmt.where(VerificationCode.channel_id == channel_id)

        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def delete_expired(db: AsyncSession, *, before: datetime) -> int:
        """Delete all codes that expired before a cutoff (periodic cleanup).

        Args:
            db: Async database session.
            before: Cutoff; rows with expires_at < before are removed.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(VerificationCode).where(
            VerificationCode.expires_at < before,
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
