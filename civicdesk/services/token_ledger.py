"""Verification token ledger.

Issues, inspects, redeems and expires single-use codes for two purposes:
email verification (bound to an account) and chat account linking (bound to
an external channel, claimed later by a signed-in user).

Guarantees:
- A code value is unique among the unconsumed codes of its purpose. Issue
  regenerates on collision, up to max_issue_attempts.
- Redemption succeeds at most once per code, however many callers race for
  it: the store performs a compare-and-set on ``consumed``.
- A code is redeemable while now <= expires_at (the expiry instant itself is
  still valid).
- Failed redemptions leave the ledger unchanged.

Security: Code values are generated with ``secrets`` and are never logged.
Redemption failures are typed for callers and logs, but the HTTP layer folds
them into one generic message so a client cannot tell which codes exist.
"""

import logging
import secrets
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from civicdesk.core.config import settings
from civicdesk.models.verification_code import CodePurpose, VerificationCode
from civicdesk.services.code_store import CodeStore, DuplicateCodeError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Errors
# =============================================================================


class RedemptionError(Exception):
    """A code could not be redeemed.

    Attributes:
        purpose: Purpose the caller tried to redeem for.
    """

    reason = "rejected"

    def __init__(self, purpose: CodePurpose, message: str | None = None) -> None:
        self.purpose = purpose
        super().__init__(message or f"Verification code {self.reason}")


class CodeNotFoundError(RedemptionError):
    """No code with this value (or not bound to the requesting subject)."""

    reason = "not found"


class CodeExpiredError(RedemptionError):
    """The code exists but its expiry has passed."""

    reason = "expired"


class CodeAlreadyConsumedError(RedemptionError):
    """The code was already redeemed."""

    reason = "already used"


class CodeConflictError(Exception):
    """No unique code could be generated within the attempt limit."""


# =============================================================================
# Per-purpose policy
# =============================================================================


@dataclass(frozen=True)
class CodeFormat:
    """Shape of generated codes.

    Attributes:
        alphabet: Characters a code is drawn from.
        length: Number of characters.
    """

    alphabet: str
    length: int

    def generate(self) -> str:
        """Draw a new code from the OS CSPRNG."""
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))

    def matches(self, value: str) -> bool:
        """Check whether a user-supplied value could be a code of this shape."""
        return len(value) == self.length and all(c in self.alphabet for c in value)


@dataclass(frozen=True)
class PurposePolicy:
    """Lifetime and format of codes issued for one purpose."""

    ttl: timedelta
    code_format: CodeFormat


def default_policies() -> dict[CodePurpose, PurposePolicy]:
    """Build purpose policies from application settings.

    Email verification codes are numeric; account-link codes use the
    configured alphabet (numeric by default).
    """
    return {
        CodePurpose.EMAIL_VERIFICATION: PurposePolicy(
            ttl=timedelta(minutes=settings.email_verification_ttl_minutes),
            code_format=CodeFormat(
                alphabet="0123456789", length=settings.verification_code_length
            ),
        ),
        CodePurpose.ACCOUNT_LINK: PurposePolicy(
            ttl=timedelta(minutes=settings.account_link_ttl_minutes),
            code_format=CodeFormat(
                alphabet=settings.account_link_code_alphabet,
                length=settings.account_link_code_length,
            ),
        ),
    }


# =============================================================================
# Ledger
# =============================================================================


class TokenLedger:
    """Single-use code ledger over a CodeStore.

    Args:
        store: Persistence backend (SqlCodeStore or InMemoryCodeStore).
        policies: TTL and format per purpose. Defaults to settings.
        clock: Returns the current aware datetime. Defaults to UTC now.
        code_factory: Produces a candidate code for a purpose. Defaults to
            the purpose's CodeFormat.
        max_issue_attempts: Collision retries before CodeConflictError.
    """

    def __init__(
        self,
        store: CodeStore,
        *,
        policies: dict[CodePurpose, PurposePolicy] | None = None,
        clock: Clock = utc_now,
        code_factory: Callable[[CodePurpose], str] | None = None,
        max_issue_attempts: int | None = None,
    ) -> None:
        self._store = store
        self._policies = policies or default_policies()
        self._clock = clock
        self._code_factory = code_factory or self._generate
        self._max_issue_attempts = (
            max_issue_attempts
            if max_issue_attempts is not None
            else settings.code_issue_max_attempts
        )

    def _generate(self, purpose: CodePurpose) -> str:
        return self._policies[purpose].code_format.generate()

    async def issue(
        self,
        purpose: CodePurpose,
        ttl: timedelta | None = None,
        *,
        subject_id: uuid.UUID | None = None,
        channel_id: str | None = None,
        channel_handle: str | None = None,
        supersede: bool = False,
    ) -> VerificationCode:
        """Issue a fresh code.

        Args:
            purpose: What the code is for.
            ttl: Lifetime. Defaults to the purpose's configured TTL.
            subject_id: Account the code is bound to (email verification).
            channel_id: External channel the code is bound to (account link).
            channel_handle: External handle captured with the channel.
            supersede: Delete the subject's (or channel's) earlier unconsumed
                codes of this purpose first, so only the newest one works.

        Returns:
            The issued VerificationCode (unconsumed).

        Raises:
            ValueError: If ttl is not positive.
            CodeConflictError: If every generated candidate collided with a
                live code.
        """
        policy = self._policies[purpose]
        lifetime = ttl if ttl is not None else policy.ttl
        if lifetime <= timedelta(0):
            msg = "Code TTL must be positive"
            raise ValueError(msg)

        if supersede:
            removed = await self._store.delete_unconsumed(
                purpose.value, subject_id=subject_id, channel_id=channel_id
            )
            if removed:
                logger.info(
                    "Superseded %d unconsumed %s code(s)", removed, purpose.value
                )

        for attempt in range(1, self._max_issue_attempts + 1):
            issued_at = self._clock()
            record = VerificationCode(
                id=uuid.uuid4(),
                purpose=purpose.value,
                code=self._code_factory(purpose),
                subject_id=subject_id,
                channel_id=channel_id,
                channel_handle=channel_handle,
                issued_at=issued_at,
                expires_at=issued_at + lifetime,
                consumed=False,
                consumed_at=None,
                bound_user_id=None,
            )
            try:
                stored = await self._store.insert(record)
            except DuplicateCodeError:
                logger.info(
                    "Code collision for %s (attempt %d/%d), regenerating",
                    purpose.value,
                    attempt,
                    self._max_issue_attempts,
                )
                continue

            logger.info(
                "Issued %s code %s (expires %s)",
                purpose.value,
                stored.id,
                stored.expires_at.isoformat(),
            )
            return stored

        logger.error(
            "Could not issue a unique %s code after %d attempts",
            purpose.value,
            self._max_issue_attempts,
        )
        msg = f"Could not issue a unique {purpose.value} code"
        raise CodeConflictError(msg)

    async def peek(self, purpose: CodePurpose, code: str) -> VerificationCode:
        """Return a code's record without consuming it.

        Read-only; used to pre-validate before a side-effecting redemption.

        Raises:
            CodeNotFoundError: If no code with this value exists.
        """
        candidate = code.strip()
        if not self._policies[purpose].code_format.matches(candidate):
            raise CodeNotFoundError(purpose)

        record = await self._store.lookup(purpose.value, candidate)
        if record is None:
            raise CodeNotFoundError(purpose)
        return record

    def is_live(self, record: VerificationCode) -> bool:
        """Check whether a peeked record could still be redeemed now."""
        return not record.consumed and not record.is_expired(self._clock())

    async def redeem(
        self,
        purpose: CodePurpose,
        code: str,
        *,
        subject_id: uuid.UUID | None = None,
        bound_user_id: uuid.UUID | None = None,
    ) -> VerificationCode:
        """Consume a code exactly once.

        Args:
            purpose: Purpose the code must have been issued for.
            code: Value supplied by the user.
            subject_id: When given, the code must be bound to this account.
            bound_user_id: User recorded as the redeemer.

        Returns:
            The consumed VerificationCode.

        Raises:
            CodeNotFoundError: Unknown value, or bound to another subject.
            CodeExpiredError: The code expired before ``now``.
            CodeAlreadyConsumedError: The code was already redeemed
                (including by a concurrent caller that won the race).
        """
        candidate = code.strip()
        if not self._policies[purpose].code_format.matches(candidate):
            raise CodeNotFoundError(purpose)

        now = self._clock()
        record = await self._store.consume(
            purpose.value,
            candidate,
            now=now,
            subject_id=subject_id,
            bound_user_id=bound_user_id,
        )
        if record is not None:
            logger.info("Redeemed %s code %s", purpose.value, record.id)
            return record

        error = await self._classify_failure(purpose, candidate, now, subject_id)
        logger.info("Rejected %s code: %s", purpose.value, error.reason)
        raise error

    async def _classify_failure(
        self,
        purpose: CodePurpose,
        code: str,
        now: datetime,
        subject_id: uuid.UUID | None,
    ) -> RedemptionError:
        record = await self._store.lookup(purpose.value, code)
        if record is None:
            return CodeNotFoundError(purpose)
        if subject_id is not None and record.subject_id != subject_id:
            return CodeNotFoundError(purpose)
        if record.consumed:
            return CodeAlreadyConsumedError(purpose)
        if record.is_expired(now):
            return CodeExpiredError(purpose)
        # Live row that the compare-and-set still missed: another caller
        # consumed it and a new code with the same value was issued since.
        return CodeAlreadyConsumedError(purpose)

    async def expire(
        self,
        now: datetime | None = None,
        grace: timedelta | None = None,
    ) -> int:
        """Remove codes that expired more than ``grace`` ago.

        Expired codes are already unredeemable; this only reclaims storage.
        Consumed codes past their expiry go too.

        Args:
            now: Reference time. Defaults to the ledger clock.
            grace: How long expired rows are kept for auditing. Defaults to
                CODE_CLEANUP_GRACE_MINUTES.

        Returns:
            Number of removed codes.
        """
        reference = now or self._clock()
        keep = (
            grace
            if grace is not None
            else timedelta(minutes=settings.code_cleanup_grace_minutes)
        )
        removed = await self._store.delete_expired(reference - keep)
        if removed:
            logger.info("Expired %d verification code(s)", removed)
        return removed
