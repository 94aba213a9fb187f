"""Task store contract.

The engine never talks to SQLAlchemy directly; it talks to these protocols.
Every mutation is a single conditional write against one record, guarded by
the ``Expected`` snapshot the caller read.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Collection, Optional, Protocol, TypeVar
from uuid import UUID

from claimgate.models import ChargeStatus, ClaimableRecord, OrderStatus, Provider

R = TypeVar("R", bound=ClaimableRecord)

Status = OrderStatus | ChargeStatus


@dataclass(frozen=True)
class Expected:
    """Version token plus prior status a conditional write must still see."""

    version: int
    status: Status

    @classmethod
    def of(cls, record: ClaimableRecord) -> "Expected":
        return cls(version=record.version, status=record.status)


@dataclass(frozen=True)
class RecordFilter:
    """Query filter; unset fields do not constrain."""

    statuses: Optional[Collection[Status]] = None
    provider_id: Optional[str] = None
    customer_id: Optional[str] = None
    payment_intent_ref: Optional[str] = None
    # claim_expires_at >= this instant
    claim_expires_after: Optional[datetime] = None
    # Pending, or Claimed with claim_expires_at < this instant
    claimable_at: Optional[datetime] = None
    limit: Optional[int] = None

    def matches(self, record: ClaimableRecord) -> bool:
        """Evaluate the filter against an in-memory record."""
        if self.statuses is not None and record.status not in self.statuses:
            return False
        if self.provider_id is not None and record.provider_id != self.provider_id:
            return False
        if self.customer_id is not None and record.customer_id != self.customer_id:
            return False
        if self.payment_intent_ref is not None:
            if getattr(record, "payment_intent_ref", None) != self.payment_intent_ref:
                return False
        if self.claim_expires_after is not None:
            expires_at = getattr(record, "claim_expires_at", None)
            if expires_at is None or expires_at < self.claim_expires_after:
                return False
        if self.claimable_at is not None and not _claimable(record, self.claimable_at):
            return False
        return True


def _claimable(record: ClaimableRecord, at: datetime) -> bool:
    if record.status == OrderStatus.PENDING:
        return True
    expires_at = getattr(record, "claim_expires_at", None)
    return record.status == OrderStatus.CLAIMED and expires_at is not None and expires_at < at


class RecordStore(Protocol[R]):
    """Durable shared store for one record type."""

    async def get(self, record_id: UUID) -> Optional[R]: ...

    async def query(self, record_filter: RecordFilter) -> list[R]: ...

    async def insert(self, record: R) -> R: ...

    async def conditional_update(
        self,
        record_id: UUID,
        expected: Expected,
        patch: dict[str, Any],
    ) -> Optional[R]:
        """Apply ``patch`` iff the record still matches ``expected``.

        Returns the updated record, or None when the condition failed.
        """
        ...


class ProviderStore(Protocol):
    """Provider profile counters."""

    async def get(self, provider_id: str) -> Optional[Provider]: ...

    async def increment(self, provider_id: str, counter: str) -> Provider: ...


PROVIDER_COUNTERS = frozenset({"accepted_job_count", "completed_job_count"})
