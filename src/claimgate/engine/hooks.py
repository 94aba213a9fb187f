"""Per-entity side effects for the lifecycle state machine."""

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from claimgate.db.store import ProviderStore
from claimgate.engine.lifecycle import Transition
from claimgate.models import (
    Action,
    Actor,
    ActorRole,
    CustomCharge,
    NotificationEvent,
    Order,
)
from claimgate.observability.metrics import metrics

if TYPE_CHECKING:
    from claimgate.integrations.notifications import NotificationDispatcher
    from claimgate.integrations.payments import PaymentGateway

logger = logging.getLogger(__name__)

_CLEARED_CLAIM = {"claimed_at": None, "claim_expires_at": None}

_ORDER_EVENTS = {
    Action.CLAIM: NotificationEvent.ORDER_CLAIMED,
    Action.ASSIGN: NotificationEvent.ORDER_CLAIMED,
    Action.RELEASE: NotificationEvent.ORDER_RELEASED,
    Action.ACCEPT: NotificationEvent.ORDER_ACCEPTED,
    Action.START: NotificationEvent.ORDER_STARTED,
    Action.COMPLETE: NotificationEvent.ORDER_COMPLETED,
    Action.CANCEL: NotificationEvent.ORDER_CANCELLED,
}

_ORDER_COUNTERS = {
    Action.ACCEPT: "accepted_job_count",
    Action.COMPLETE: "completed_job_count",
}


class OrderHooks:
    """Timestamps, provider counters and notifications for repair orders."""

    def __init__(
        self,
        providers: ProviderStore,
        notifier: "NotificationDispatcher",
        claim_duration: timedelta,
    ):
        self.providers = providers
        self.notifier = notifier
        self.claim_duration = claim_duration

    async def prepare(
        self,
        transition: Transition,
        record: Order,
        actor: Actor,
        now: datetime,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        action = transition.action

        if action in (Action.CLAIM, Action.ASSIGN):
            return {
                "provider_id": params.get("provider_id", actor.id),
                "claimed_at": now,
                "claim_expires_at": now + self.claim_duration,
                "assigned_by_admin": action == Action.ASSIGN,
            }
        if action == Action.RELEASE:
            return {"provider_id": None, "assigned_by_admin": False, **_CLEARED_CLAIM}
        if action == Action.ACCEPT:
            return {"accepted_at": now, **_CLEARED_CLAIM}
        if action == Action.START:
            return {"started_at": now}
        if action == Action.COMPLETE:
            return {"completed_at": now}
        if action == Action.CANCEL:
            return {
                "cancelled_at": now,
                "cancelled_by": actor.id,
                "cancellation_reason": params.get("reason"),
                "provider_id": None,
                **_CLEARED_CLAIM,
            }
        return {}

    async def committed(self, transition: Transition, before: Order, after: Order, actor: Actor) -> None:
        counter = _ORDER_COUNTERS.get(transition.action)
        if counter and after.provider_id:
            await self._bump(after.provider_id, counter)

        event = _ORDER_EVENTS.get(transition.action)
        if event is None:
            return
        data = {"order_id": str(after.id), "status": after.status.value}

        if actor.role != ActorRole.CUSTOMER:
            self.notifier.dispatch(after.customer_id, event, data)
        if transition.action == Action.ASSIGN:
            self.notifier.dispatch(after.provider_id, event, data)
        if transition.action == Action.CANCEL and actor.role != ActorRole.PROVIDER:
            # provider_id is cleared by the write; tell whoever held it
            self.notifier.dispatch(before.provider_id, event, data)

    async def abandoned(self, transition: Transition, record: Order, patch: dict[str, Any]) -> None:
        return None

    async def _bump(self, provider_id: str, counter: str) -> None:
        """Counter updates are best effort and never fail the transition."""
        try:
            await self.providers.increment(provider_id, counter)
        except Exception:
            metrics.inc_counter("providers.counter_failed", counter=counter)
            logger.exception("Failed to increment %s for provider %s", counter, provider_id)


class ChargeHooks:
    """Payment intent creation and notifications for custom charges."""

    def __init__(
        self,
        payments: "PaymentGateway",
        notifier: "NotificationDispatcher",
        currency: str,
    ):
        self.payments = payments
        self.notifier = notifier
        self.currency = currency

    async def prepare(
        self,
        transition: Transition,
        record: CustomCharge,
        actor: Actor,
        now: datetime,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        action = transition.action

        if action == Action.APPROVE:
            # PaymentUnavailable propagates before anything is written
            intent_ref = await self.payments.create_intent(
                record.price,
                self.currency,
                {
                    "charge_id": str(record.id),
                    "customer_id": record.customer_id,
                    "provider_id": record.provider_id,
                },
            )
            return {"approved_at": now, "payment_intent_ref": intent_ref}
        if action == Action.CONFIRM_PAYMENT:
            return {"paid_at": now}
        if action == Action.DECLINE:
            return {"declined_at": now}
        if action == Action.CANCEL:
            return {"cancelled_at": now}
        return {}

    async def committed(
        self,
        transition: Transition,
        before: CustomCharge,
        after: CustomCharge,
        actor: Actor,
    ) -> None:
        data = {"charge_id": str(after.id), "status": after.status.value}
        if after.order_id:
            data["order_id"] = str(after.order_id)

        action = transition.action
        if action == Action.APPROVE:
            self.notifier.dispatch(after.provider_id, NotificationEvent.CHARGE_APPROVED, data)
        elif action == Action.DECLINE:
            self.notifier.dispatch(after.provider_id, NotificationEvent.CHARGE_DECLINED, data)
        elif action == Action.CANCEL:
            self.notifier.dispatch(after.customer_id, NotificationEvent.CHARGE_CANCELLED, data)
        elif action == Action.CONFIRM_PAYMENT:
            self.notifier.dispatch(after.provider_id, NotificationEvent.CHARGE_PAID, data)
            self.notifier.dispatch(after.customer_id, NotificationEvent.CHARGE_PAID, data)

    async def abandoned(self, transition: Transition, record: CustomCharge, patch: dict[str, Any]) -> None:
        intent_ref = patch.get("payment_intent_ref")
        if intent_ref:
            metrics.inc_counter("payments.intent_orphaned")
            logger.warning(
                "Payment intent %s for charge %s was created but the approval lost a concurrent write",
                intent_ref,
                record.id,
            )
