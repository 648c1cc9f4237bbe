"""Storage backends for the verification code ledger.

The ledger only needs five primitives from its store; both backends provide
them with the same atomicity guarantees:

- insert: fails with DuplicateCodeError if an unconsumed code with the same
  purpose and value exists
- lookup: read-only
- consume: compare-and-set on ``consumed`` (never read-then-write)
- delete_unconsumed: supersede earlier codes of a subject or channel
- delete_expired: cleanup sweep

SqlCodeStore is the production backend: PostgreSQL enforces uniqueness
with a partial unique index and serializes redemptions through a
conditional UPDATE, so any number of API instances can share it.

InMemoryCodeStore keeps codes in a dict. Its coroutines never await
between check and write, which makes them atomic on a single event loop;
it is not safe for multi-threaded or multi-process use.
"""

import uuid
from datetime import datetime
from typing import Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.models.verification_code import VerificationCode
from civicdesk.repositories.verification_code_repository import (
    VerificationCodeRepository,
)


class DuplicateCodeError(Exception):
    """An unconsumed code with the same purpose and value already exists."""


class CodeStore(Protocol):
    """Persistence primitives used by TokenLedger."""

    async def insert(self, record: VerificationCode) -> VerificationCode: ...

    async def lookup(self, purpose: str, code: str) -> VerificationCode | None: ...

    async def consume(
        self,
        purpose: str,
        code: str,
        *,
        now: datetime,
        subject_id: uuid.UUID | None = None,
        bound_user_id: uuid.UUID | None = None,
    ) -> VerificationCode | None: ...

    async def delete_unconsumed(
        self,
        purpose: str,
        *,
        subject_id: uuid.UUID | None = None,
        channel_id: str | None = None,
    ) -> int: ...

    async def delete_expired(self, before: datetime) -> int: ...


# =============================================================================
# PostgreSQL
# =============================================================================


class SqlCodeStore:
    """CodeStore backed by the verification_codes table.

    Bound to the request's AsyncSession; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def insert(self, record: VerificationCode) -> VerificationCode:
        # Savepoint: a collision rolls back this attempt only, the
        # surrounding request transaction stays usable for the retry.
        try:
            async with self._db.begin_nested():
                return await VerificationCodeRepository.create(self._db, record)
        except IntegrityError as exc:
            raise DuplicateCodeError(record.purpose) from exc

    async def lookup(self, purpose: str, code: str) -> VerificationCode | None:
        return await VerificationCodeRepository.get_by_code(
            self._db, purpose=purpose, code=code
        )

    async def consume(
        self,
        purpose: str,
        code: str,
        *,
        now: datetime,
        subject_id: uuid.UUID | None = None,
        bound_user_id: uuid.UUID | None = None,
    ) -> VerificationCode | None:
        return await VerificationCodeRepository.consume(
            self._db,
            purpose=purpose,
            code=code,
            now=now,
            subject_id=subject_id,
            bound_user_id=bound_user_id,
        )

    async def delete_unconsumed(
        self,
        purpose: str,
        *,
        subject_id: uuid.UUID | None = None,
        channel_id: str | None = None,
    ) -> int:
        return await VerificationCodeRepository.delete_unconsumed(
            self._db, purpose=purpose, subject_id=subject_id, channel_id=channel_id
        )

    async def delete_expired(self, before: datetime) -> int:
        return await VerificationCodeRepository.delete_expired(self._db, before=before)


# =============================================================================
# In-memory
# =============================================================================


class InMemoryCodeStore:
    """CodeStore kept in process memory (single event loop only)."""

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], list[VerificationCode]] = {}

    def _live(self, purpose: str, code: str) -> VerificationCode | None:
        for row in self._rows.get((purpose, code), []):
            if not row.consumed:
                return row
        return None

    async def insert(self, record: VerificationCode) -> VerificationCode:
        if self._live(record.purpose, record.code) is not None:
            raise DuplicateCodeError(record.purpose)
        self._rows.setdefault((record.purpose, record.code), []).append(record)
        return record

    async def lookup(self, purpose: str, code: str) -> VerificationCode | None:
        live = self._live(purpose, code)
        if live is not None:
            return live
        rows = self._rows.get((purpose, code), [])
        return max(rows, key=lambda r: r.issued_at) if rows else None

    async def consume(
        self,
        purpose: str,
        code: str,
        *,
        now: datetime,
        subject_id: uuid.UUID | None = None,
        bound_user_id: uuid.UUID | None = None,
    ) -> VerificationCode | None:
        row = self._live(purpose, code)
        if row is None or row.expires_at < now:
            return None
        if subject_id is not None and row.subject_id != subject_id:
            return None

        row.consumed = True
        row.consumed_at = now
        if bound_user_id is not None:
            row.bound_user_id = bound_user_id
        return row

    async def delete_unconsumed(
        self,
        purpose: str,
        *,
        subject_id: uuid.UUID | None = None,
        channel_id: str | None = None,
    ) -> int:
        if subject_id is None and channel_id is None:
            return 0

        def _superseded(row: VerificationCode) -> bool:
            return (
                row.purpose == purpose
                and not row.consumed
                and (subject_id is None or row.subject_id == subject_id)
                and (channel_id is None or row.channel_id == channel_id)
            )

        return self._remove(_superseded)

    async def delete_expired(self, before: datetime) -> int:
        return self._remove(lambda row: row.expires_at < before)

    def _remove(self, predicate) -> int:
        removed = 0
        for key in list(self._rows):
            kept = [row for row in self._rows[key] if not predicate(row)]
            removed += len(self._rows[key]) - len(kept)
            if kept:
                self._rows[key] = kept
            else:
                del self._rows[key]
        return removed

    def __len__(self) -> int:
        return sum(len(rows) for rows in self._rows.values())

    def clear(self) -> None:
        """Clear all codes (for testing)."""
        self._rows.clear()


# Singleton instance for local-first mode (CODE_STORE_BACKEND=memory)
_memory_store: InMemoryCodeStore | None = None


def get_memory_code_store() -> InMemoryCodeStore:
    """Get the process-wide in-memory store.

    Returns:
        The InMemoryCodeStore singleton.
    """
    global _memory_store
    if _memory_store is None:
        _memory_store = InMemoryCodeStore()
    return _memory_store


def reset_memory_code_store() -> None:
    """Reset the in-memory store singleton (for testing)."""
    global _memory_store
    if _memory_store is not None:
        _memory_store.clear()
    _memory_store = None
