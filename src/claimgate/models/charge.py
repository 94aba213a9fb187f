"""Custom charge model - an ad-hoc quote raised by a mechanic."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import field_validator

from claimgate.models.enums import ChargeStatus
from claimgate.models.record import ClaimableRecord


class CustomCharge(ClaimableRecord):
    """Quote a provider asks a customer to approve and pay."""

    provider_id: str
    status: ChargeStatus = ChargeStatus.PENDING_APPROVAL

    order_id: Optional[UUID] = None
    description: str
    price: Decimal

    payment_intent_ref: Optional[str] = None
    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def translate_status(cls, v):
        return ChargeStatus.parse(v)

    def is_terminal(self) -> bool:
        return self.status.is_terminal()
