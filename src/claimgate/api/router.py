"""REST API router.

Engine errors are not caught here; ``claimgate.main`` maps every
``ClaimGateError`` to its HTTP status and error envelope.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from claimgate.api.deps import get_caller, get_task_service, verify_api_key
from claimgate.api.schemas import (
    AssignOrderRequest,
    CancelOrderRequest,
    CreateChargeRequest,
    HealthResponse,
    ListChargesResponse,
    ListOrdersResponse,
    PaymentConfirmedRequest,
    PaymentFailedRequest,
    SubmitOrderRequest,
)
from claimgate.config import settings
from claimgate.engine import TaskService
from claimgate.models import Actor, ChargeStatus, CustomCharge, Order, OrderView, Provider

router = APIRouter(prefix="/v1", dependencies=[Depends(verify_api_key)])


def _limit(limit: Optional[int]) -> int:
    return min(limit or settings.default_list_limit, settings.max_list_limit)


# ============================================================================
# Health
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version="0.1.0")


# ============================================================================
# Orders
# ============================================================================


@router.post("/orders", response_model=Order, status_code=201)
async def submit_order(
    request: SubmitOrderRequest,
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    """Submit a new repair order."""
    return await service.submit_order(
        caller,
        items=request.items,
        total_price=request.total_price,
        location_details=request.location_details,
        description=request.description,
        vehicle_info=request.vehicle_info,
        categories=request.categories,
    )


@router.get("/orders", response_model=ListOrdersResponse)
async def list_my_orders(
    limit: Optional[int] = Query(None, ge=1, le=200),
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    """Orders submitted by the calling customer."""
    return ListOrdersResponse(orders=await service.list_customer_orders(caller, _limit(limit)))


@router.get("/orders/claimable", response_model=ListOrdersResponse)
async def list_claimable(
    limit: Optional[int] = Query(None, ge=1, le=200),
    service: TaskService = Depends(get_task_service),
):
    """Orders any provider may claim right now, oldest first."""
    return ListOrdersResponse(orders=await service.list_claimable(_limit(limit)))


@router.get("/orders/claims", response_model=ListOrdersResponse)
async def list_my_claims(
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    """
    Claims held by the calling provider.

    Lapsed claims are included with ``claim_expired`` set so the UI can show
    them as lost rather than silently dropping them.
    """
    return ListOrdersResponse(orders=await service.list_my_claims(caller))


@router.get("/orders/{order_id}", response_model=OrderView)
async def get_order(
    order_id: UUID,
    service: TaskService = Depends(get_task_service),
):
    """Get an order with its live claim state."""
    return await service.get_order(order_id)


@router.post("/orders/{order_id}/claim", response_model=Order)
async def claim_order(
    order_id: UUID,
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    return await service.claim(order_id, caller)


@router.post("/orders/{order_id}/release", response_model=Order)
async def release_order(
    order_id: UUID,
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    return await service.release(order_id, caller)


@router.post("/orders/{order_id}/assign", response_model=Order)
async def assign_order(
    order_id: UUID,
    request: AssignOrderRequest,
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    """Admin places a claim on behalf of a provider."""
    return await service.assign(order_id, request.provider_id, caller)


@router.post("/orders/{order_id}/accept", response_model=Order)
async def accept_order(
    order_id: UUID,
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    return await service.accept(order_id, caller)


@router.post("/orders/{order_id}/start", response_model=Order)
async def start_order(
    order_id: UUID,
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    return await service.start(order_id, caller)


@router.post("/orders/{order_id}/complete", response_model=Order)
async def complete_order(
    order_id: UUID,
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    return await service.complete(order_id, caller)


@router.post("/orders/{order_id}/cancel", response_model=Order)
async def cancel_order(
    order_id: UUID,
    request: Optional[CancelOrderRequest] = None,
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    """Cancel an order."""
    reason = request.reason if request else None
    return await service.cancel(order_id, caller, reason=reason)


# ============================================================================
# Providers
# ============================================================================


@router.get("/providers/{provider_id}", response_model=Provider)
async def get_provider(
    provider_id: str,
    service: TaskService = Depends(get_task_service),
):
    """Get provider job counters."""
    return await service.get_provider(provider_id)


# ============================================================================
# Custom charges
# ============================================================================


@router.post("/charges", response_model=CustomCharge, status_code=201)
async def create_charge(
    request: CreateChargeRequest,
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    """Provider raises a custom charge for customer approval."""
    return await service.create_charge(
        caller,
        customer_id=request.customer_id,
        description=request.description,
        price=request.price,
        order_id=request.order_id,
    )


@router.get("/charges", response_model=ListChargesResponse)
async def list_charges(
    status: Optional[ChargeStatus] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    """List charges the caller is a party to."""
    charges = await service.list_charges(caller, status=status, limit=_limit(limit))
    return ListChargesResponse(charges=charges)


@router.get("/charges/{charge_id}", response_model=CustomCharge)
async def get_charge(
    charge_id: UUID,
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    return await service.get_charge(charge_id, caller)


@router.post("/charges/{charge_id}/approve", response_model=CustomCharge)
async def approve_charge(
    charge_id: UUID,
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    """Customer approves; a payment intent is created before the write."""
    return await service.approve_charge(charge_id, caller)


@router.post("/charges/{charge_id}/decline", response_model=CustomCharge)
async def decline_charge(
    charge_id: UUID,
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    return await service.decline_charge(charge_id, caller)


@router.post("/charges/{charge_id}/cancel", response_model=CustomCharge)
async def cancel_charge(
    charge_id: UUID,
    caller: Actor = Depends(get_caller),
    service: TaskService = Depends(get_task_service),
):
    return await service.cancel_charge(charge_id, caller)


# ============================================================================
# Payment webhooks
# ============================================================================


@router.post("/payments/confirmed", response_model=CustomCharge)
async def payment_confirmed(
    request: PaymentConfirmedRequest,
    service: TaskService = Depends(get_task_service),
):
    """Payment gateway callback for a settled intent."""
    return await service.confirm_payment(request.payment_intent_ref)


@router.post("/payments/failed", response_model=CustomCharge)
async def payment_failed(
    request: PaymentFailedRequest,
    service: TaskService = Depends(get_task_service),
):
    """Payment gateway callback for a failed intent."""
    return await service.payment_failed(request.payment_intent_ref, request.reason)
