"""API request/response schemas."""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from claimgate.models import CustomCharge, LocationDetails, OrderItem, OrderView


# ============================================================================
# Orders
# ============================================================================


class SubmitOrderRequest(BaseModel):
    """Submit order request."""

    items: list[OrderItem] = Field(..., min_length=1, description="Requested services")
    total_price: Decimal = Field(..., ge=0, description="Total quoted price")
    location_details: Optional[LocationDetails] = None
    description: Optional[str] = Field(None, max_length=4000)
    vehicle_info: Optional[str] = Field(None, max_length=255)
    categories: list[str] = Field(default_factory=list)


class CancelOrderRequest(BaseModel):
    """Cancel order request."""

    reason: Optional[str] = Field(None, max_length=1000, description="Cancellation reason")


class AssignOrderRequest(BaseModel):
    """Admin assignment request."""

    provider_id: str = Field(..., min_length=1, description="Provider to place the claim for")


class ListOrdersResponse(BaseModel):
    """List of orders annotated with live claim state."""

    orders: list[OrderView]


# ============================================================================
# Custom charges
# ============================================================================


class CreateChargeRequest(BaseModel):
    """Create custom charge request."""

    customer_id: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1, max_length=4000)
    price: Decimal = Field(..., gt=0, description="Quoted price")
    order_id: Optional[UUID] = Field(None, description="Order this charge belongs to")


class ListChargesResponse(BaseModel):
    """List charges response."""

    charges: list[CustomCharge]


# ============================================================================
# Payment webhooks
# ============================================================================


class PaymentConfirmedRequest(BaseModel):
    """Payment gateway callback: intent settled."""

    payment_intent_ref: str = Field(..., min_length=1)


class PaymentFailedRequest(BaseModel):
    """Payment gateway callback: intent failed."""

    payment_intent_ref: str = Field(..., min_length=1)
    reason: Optional[str] = None


# ============================================================================
# Health & errors
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


class ErrorDetail(BaseModel):
    """Body of a ClaimGate error."""

    code: str
    message: str
    retryable: bool


class ErrorResponse(BaseModel):
    """Error envelope."""

    error: ErrorDetail
