"""Shared shape of claimable/approvable records."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from claimgate.models.enums import ActorRole


class ClaimableRecord(BaseModel):
    """Fields common to repair orders and custom charges.

    ``version`` is the optimistic-concurrency token: every committed write
    bumps it by one, and conditional writes are guarded on the value read.
    """

    id: UUID
    customer_id: str
    provider_id: Optional[str] = None
    version: int = 0
    created_at: datetime
    updated_at: datetime

    def owner_for(self, role: ActorRole) -> Optional[str]:
        """Return the party a caller with ``role`` must match, if any."""
        if role == ActorRole.PROVIDER:
            return self.provider_id
        if role == ActorRole.CUSTOMER:
            return self.customer_id
        return None
