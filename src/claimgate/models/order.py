"""Order model - a customer's repair request."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from claimgate.models.enums import OrderStatus
from claimgate.models.record import ClaimableRecord


class OrderItem(BaseModel):
    """A line item within an order."""

    id: str
    name: str
    price: Decimal
    quantity: int = 1
    vehicle_id: Optional[str] = None
    vehicle_display: Optional[str] = None


class LocationDetails(BaseModel):
    """Where the work happens."""

    address: str
    city: str
    state: str
    zip_code: str
    phone_number: str
    additional_notes: Optional[str] = None


class Order(ClaimableRecord):
    """Repair order entity."""

    status: OrderStatus = OrderStatus.PENDING

    # Claim
    claimed_at: Optional[datetime] = None
    claim_expires_at: Optional[datetime] = None
    assigned_by_admin: bool = False

    # Lifecycle timestamps
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None

    # Request details
    items: list[OrderItem] = Field(default_factory=list)
    total_price: Decimal = Decimal("0")
    location_details: Optional[LocationDetails] = None
    description: Optional[str] = None
    vehicle_info: Optional[str] = None
    categories: list[str] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def translate_status(cls, v):
        return OrderStatus.parse(v)

    def is_terminal(self) -> bool:
        return self.status.is_terminal()

    def is_claim_expired(self, now: datetime) -> bool:
        """A stored claim whose deadline has passed."""
        return (
            self.status == OrderStatus.CLAIMED
            and self.claim_expires_at is not None
            and self.claim_expires_at < now
        )

    def effective_status(self, now: datetime) -> OrderStatus:
        """Status as callers should see it: an expired claim reads as Pending."""
        if self.is_claim_expired(now):
            return OrderStatus.PENDING
        return self.status


class OrderView(BaseModel):
    """Order annotated with its live claim state at read time."""

    order: Order
    effective_status: OrderStatus
    claimable: bool
    claim_expired: bool
    claim_seconds_remaining: Optional[int] = None

    @classmethod
    def at(cls, order: Order, now: datetime) -> "OrderView":
        expired = order.is_claim_expired(now)
        remaining = None
        if order.status == OrderStatus.CLAIMED and order.claim_expires_at and not expired:
            remaining = int((order.claim_expires_at - now).total_seconds())
        effective = order.effective_status(now)
        return cls(
            order=order,
            effective_status=effective,
            claimable=effective == OrderStatus.PENDING,
            claim_expired=expired,
            claim_seconds_remaining=remaining,
        )
