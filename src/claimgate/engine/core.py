"""ClaimGate core engine - the service façade callers use."""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Optional
from uuid import UUID, uuid4

from claimgate.config import settings
from claimgate.db.store import ProviderStore, RecordFilter, RecordStore
from claimgate.engine.claims import ClaimManager
from claimgate.engine.errors import InvalidTransition, NotOwner, TaskNotFound, TerminalStateError
from claimgate.engine.hooks import ChargeHooks, OrderHooks
from claimgate.engine.lifecycle import (
    CHARGE_LIFECYCLE,
    ORDER_LIFECYCLE,
    LifecycleStateMachine,
)
from claimgate.models import (
    Action,
    Actor,
    ActorRole,
    ChargeStatus,
    CustomCharge,
    LocationDetails,
    NotificationEvent,
    Order,
    OrderItem,
    OrderStatus,
    OrderView,
    Provider,
)
from claimgate.observability.metrics import metrics
from claimgate.utils.time import utc_now

if TYPE_CHECKING:
    from claimgate.integrations.notifications import NotificationDispatcher
    from claimgate.integrations.payments import PaymentGateway

logger = logging.getLogger(__name__)


class TaskService:
    """Core engine implementing order claiming and both record lifecycles.

    Every operation takes the authenticated caller explicitly and performs at
    most one conditional write to the record it targets.
    """

    def __init__(
        self,
        orders: RecordStore[Order],
        charges: RecordStore[CustomCharge],
        providers: ProviderStore,
        notifier: "NotificationDispatcher",
        payments: "PaymentGateway",
        clock: Callable[[], datetime] = utc_now,
        max_claims_per_provider: Optional[int] = None,
        claim_duration_seconds: Optional[int] = None,
        currency: Optional[str] = None,
    ):
        self.orders = orders
        self.charges = charges
        self.providers = providers
        self.notifier = notifier
        self.clock = clock

        claim_duration = timedelta(seconds=claim_duration_seconds or settings.claim_duration_seconds)
        self.order_machine = LifecycleStateMachine(
            ORDER_LIFECYCLE,
            orders,
            OrderHooks(providers, notifier, claim_duration),
            status_view=ClaimManager.effective_status,
        )
        self.claims = ClaimManager(
            orders,
            self.order_machine,
            max_claims_per_provider or settings.max_claims_per_provider,
        )
        self.charge_machine = LifecycleStateMachine(
            CHARGE_LIFECYCLE,
            charges,
            ChargeHooks(payments, notifier, currency or settings.payment_currency),
        )

    # =========================================================================
    # Orders
    # =========================================================================

    async def submit_order(
        self,
        customer: Actor,
        items: list[OrderItem],
        total_price: Decimal,
        location_details: Optional[LocationDetails] = None,
        description: Optional[str] = None,
        vehicle_info: Optional[str] = None,
        categories: Optional[list[str]] = None,
    ) -> Order:
        """Create a new Pending order owned by the calling customer."""
        if customer.role != ActorRole.CUSTOMER:
            raise InvalidTransition("new", "submit", customer.role.value)

        now = self.clock()
        order = Order(
            id=uuid4(),
            customer_id=customer.id,
            status=OrderStatus.PENDING,
            items=items,
            total_price=total_price,
            location_details=location_details,
            description=description,
            vehicle_info=vehicle_info,
            categories=categories or [],
            created_at=now,
            updated_at=now,
        )
        await self.orders.insert(order)

        metrics.inc_counter("orders.submitted")
        logger.info("Order %s submitted by %s", order.id, customer.id)
        return order

    async def get_order(self, order_id: UUID) -> OrderView:
        """Get an order with its claim state evaluated now."""
        order = await self.order_machine.load(order_id)
        return OrderView.at(order, self.clock())

    async def claim(self, order_id: UUID, caller: Actor) -> Order:
        return await self.claims.claim(order_id, caller, self.clock())

    async def release(self, order_id: UUID, caller: Actor) -> Order:
        return await self.claims.release(order_id, caller, self.clock())

    async def assign(self, order_id: UUID, provider_id: str, caller: Actor) -> Order:
        return await self.claims.assign(order_id, provider_id, caller, self.clock())

    async def accept(self, order_id: UUID, caller: Actor) -> Order:
        """Turn a live claim into accepted work."""
        return await self.order_machine.apply(order_id, Action.ACCEPT, caller, self.clock())

    async def start(self, order_id: UUID, caller: Actor) -> Order:
        return await self.order_machine.apply(order_id, Action.START, caller, self.clock())

    async def complete(self, order_id: UUID, caller: Actor) -> Order:
        return await self.order_machine.apply(order_id, Action.COMPLETE, caller, self.clock())

    async def cancel(self, order_id: UUID, caller: Actor, reason: Optional[str] = None) -> Order:
        """
        Cancel an order.

        Customers and admins cancel while it is still Pending; the assigned
        provider cancels Accepted or InProgress work.
        """
        return await self.order_machine.apply(
            order_id,
            Action.CANCEL,
            caller,
            self.clock(),
            params={"reason": reason},
        )

    async def list_claimable(self, limit: Optional[int] = None) -> list[OrderView]:
        return await self.claims.list_claimable(self.clock(), limit)

    async def list_my_claims(self, caller: Actor) -> list[OrderView]:
        """Orders the calling provider has claimed, including lapsed claims."""
        if caller.role != ActorRole.PROVIDER:
            return []
        return await self.claims.list_claims(caller.id, self.clock())

    async def list_customer_orders(self, caller: Actor, limit: Optional[int] = None) -> list[OrderView]:
        orders = await self.orders.query(RecordFilter(customer_id=caller.id, limit=limit))
        now = self.clock()
        return [OrderView.at(order, now) for order in orders]

    async def get_provider(self, provider_id: str) -> Provider:
        """Provider counters; a provider with no recorded jobs reads as zeros."""
        provider = await self.providers.get(provider_id)
        return provider or Provider(id=provider_id)

    # =========================================================================
    # Custom charges
    # =========================================================================

    async def create_charge(
        self,
        caller: Actor,
        customer_id: str,
        description: str,
        price: Decimal,
        order_id: Optional[UUID] = None,
    ) -> CustomCharge:
        """A provider quotes extra work for a customer to approve."""
        if caller.role != ActorRole.PROVIDER:
            raise InvalidTransition("new", "create_charge", caller.role.value)

        if order_id is not None:
            order = await self.order_machine.load(order_id)
            if order.customer_id != customer_id:
                raise InvalidTransition(order.status.value, "create_charge", caller.role.value)

        now = self.clock()
        charge = CustomCharge(
            id=uuid4(),
            customer_id=customer_id,
            provider_id=caller.id,
            status=ChargeStatus.PENDING_APPROVAL,
            order_id=order_id,
            description=description,
            price=price,
            created_at=now,
            updated_at=now,
        )
        await self.charges.insert(charge)

        metrics.inc_counter("charges.created")
        logger.info("Charge %s created by %s for %s", charge.id, caller.id, customer_id)
        self.notifier.dispatch(
            customer_id,
            NotificationEvent.CHARGE_CREATED,
            {"charge_id": str(charge.id), "status": charge.status.value},
        )
        return charge

    async def get_charge(self, charge_id: UUID, caller: Actor) -> CustomCharge:
        """Get a charge visible to the caller (either party, or an admin)."""
        charge = await self.charge_machine.load(charge_id)
        if caller.role == ActorRole.CUSTOMER and charge.customer_id != caller.id:
            raise NotOwner(str(charge_id), caller.id)
        if caller.role == ActorRole.PROVIDER and charge.provider_id != caller.id:
            raise NotOwner(str(charge_id), caller.id)
        return charge

    async def list_charges(
        self,
        caller: Actor,
        status: Optional[ChargeStatus] = None,
        limit: Optional[int] = None,
    ) -> list[CustomCharge]:
        """Charges the caller is a party to."""
        statuses = {status} if status else None
        if caller.role == ActorRole.CUSTOMER:
            record_filter = RecordFilter(statuses=statuses, customer_id=caller.id, limit=limit)
        elif caller.role == ActorRole.PROVIDER:
            record_filter = RecordFilter(statuses=statuses, provider_id=caller.id, limit=limit)
        else:
            record_filter = RecordFilter(statuses=statuses, limit=limit)
        return await self.charges.query(record_filter)

    async def approve_charge(self, charge_id: UUID, caller: Actor) -> CustomCharge:
        """Customer approval; creates the payment intent before committing."""
        return await self.charge_machine.apply(charge_id, Action.APPROVE, caller, self.clock())

    async def decline_charge(self, charge_id: UUID, caller: Actor) -> CustomCharge:
        return await self.charge_machine.apply(charge_id, Action.DECLINE, caller, self.clock())

    async def cancel_charge(self, charge_id: UUID, caller: Actor) -> CustomCharge:
        return await self.charge_machine.apply(charge_id, Action.CANCEL, caller, self.clock())

    async def confirm_payment(self, intent_ref: str) -> CustomCharge:
        """
        Payment gateway callback: the intent settled.

        Gateways redeliver webhooks, so confirming an already accepted charge
        with the same reference returns it unchanged.
        """
        charge = await self._charge_by_intent(intent_ref)
        if charge.status == ChargeStatus.ACCEPTED:
            logger.info("Duplicate payment confirmation for charge %s (%s)", charge.id, intent_ref)
            return charge
        try:
            paid = await self.charge_machine.apply_to(charge, Action.CONFIRM_PAYMENT, Actor.system(), self.clock())
        except TerminalStateError:
            # A concurrent redelivery committed first
            current = await self.charges.get(charge.id)
            if (
                current is not None
                and current.status == ChargeStatus.ACCEPTED
                and current.payment_intent_ref == intent_ref
            ):
                logger.info("Duplicate payment confirmation for charge %s (%s)", charge.id, intent_ref)
                return current
            raise
        metrics.inc_counter("payments.confirmed")
        return paid

    async def payment_failed(self, intent_ref: str, reason: Optional[str] = None) -> CustomCharge:
        """
        Payment gateway callback: the intent failed.

        The charge stays ApprovedAndPendingPayment; there is no rollback to
        PendingApproval.
        """
        charge = await self._charge_by_intent(intent_ref)
        metrics.inc_counter("payments.failed")
        logger.warning(
            "Payment failed for charge %s (intent %s): %s",
            charge.id,
            intent_ref,
            reason or "no reason given",
        )
        self.notifier.dispatch(
            charge.customer_id,
            NotificationEvent.CHARGE_PAYMENT_FAILED,
            {"charge_id": str(charge.id), "reason": reason},
        )
        return charge

    async def _charge_by_intent(self, intent_ref: str) -> CustomCharge:
        matches = await self.charges.query(RecordFilter(payment_intent_ref=intent_ref, limit=1))
        if not matches:
            raise TaskNotFound(intent_ref)
        return matches[0]
