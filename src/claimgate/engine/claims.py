"""Claim acquisition, release and admin assignment for repair orders.

A claim is a time-boxed exclusive hold. Expiry is derived, not swept: a
stored ``Claimed`` order whose ``claim_expires_at`` is in the past reads as
``Pending`` and may be claimed by anyone, and it stops counting toward the
holder's quota at that instant.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from claimgate.db.store import RecordFilter, RecordStore
from claimgate.engine.errors import ClaimConflict, QuotaExceeded, TerminalStateError
from claimgate.engine.lifecycle import LifecycleStateMachine
from claimgate.models import Action, Actor, Order, OrderStatus, OrderView
from claimgate.observability.metrics import metrics

logger = logging.getLogger(__name__)


class ClaimManager:
    """Enforces exclusivity, expiry and the per-provider claim quota."""

    def __init__(
        self,
        orders: RecordStore[Order],
        machine: LifecycleStateMachine[Order],
        max_claims_per_provider: int,
    ):
        self.orders = orders
        self.machine = machine
        self.max_claims_per_provider = max_claims_per_provider

    @staticmethod
    def is_expired(order: Order, now: datetime) -> bool:
        return order.is_claim_expired(now)

    @staticmethod
    def effective_status(order: Order, now: datetime) -> OrderStatus:
        return order.effective_status(now)

    async def claim(self, order_id: UUID, provider: Actor, now: datetime) -> Order:
        """
        Take an exclusive, time-limited hold on a Pending order.

        Exactly one of any number of concurrent claims on the same order
        succeeds; the others get ClaimConflict from the conditional write.
        """
        order = await self.machine.load(order_id)
        self._ensure_claimable(order, now)
        self.machine.validate(order, Action.CLAIM, provider, now)

        live = await self.count_live_claims(provider.id, now)
        if live >= self.max_claims_per_provider:
            metrics.inc_counter("claims.quota_exceeded")
            logger.info(
                "Provider %s refused claim on %s: holds %d/%d",
                provider.id,
                order_id,
                live,
                self.max_claims_per_provider,
            )
            raise QuotaExceeded(provider.id, self.max_claims_per_provider)

        claimed = await self.machine.apply_to(
            order,
            Action.CLAIM,
            provider,
            now,
            params={"provider_id": provider.id},
            on_conflict=self._conflict_for(order),
        )
        metrics.inc_counter("claims.acquired")
        if self.is_expired(order, now):
            logger.info("Order %s reclaimed from expired holder %s", order_id, order.provider_id)
        return claimed

    async def release(self, order_id: UUID, provider: Actor, now: datetime) -> Order:
        """Give a live claim back. An expired claim can no longer be released."""
        released = await self.machine.apply(order_id, Action.RELEASE, provider, now)
        metrics.inc_counter("claims.released")
        return released

    async def assign(self, order_id: UUID, provider_id: str, admin: Actor, now: datetime) -> Order:
        """Put a claim on behalf of ``provider_id``. Admin only; not subject to quota."""
        order = await self.machine.load(order_id)
        self._ensure_claimable(order, now)

        assigned = await self.machine.apply_to(
            order,
            Action.ASSIGN,
            admin,
            now,
            params={"provider_id": provider_id},
            on_conflict=self._conflict_for(order),
        )
        metrics.inc_counter("claims.assigned")
        logger.info("Order %s assigned to %s by %s", order_id, provider_id, admin.id)
        return assigned

    async def count_live_claims(self, provider_id: str, now: datetime) -> int:
        """Stored Claimed orders held by ``provider_id`` whose deadline has not passed."""
        live = await self.orders.query(
            RecordFilter(
                statuses={OrderStatus.CLAIMED},
                provider_id=provider_id,
                claim_expires_after=now,
            )
        )
        return len(live)

    async def list_claims(self, provider_id: str, now: datetime) -> list[OrderView]:
        """Every stored claim for a provider, live or expired, flagged at ``now``."""
        held = await self.orders.query(RecordFilter(statuses={OrderStatus.CLAIMED}, provider_id=provider_id))
        return [OrderView.at(order, now) for order in held]

    async def list_claimable(self, now: datetime, limit: Optional[int] = None) -> list[OrderView]:
        """Orders whose effective status is Pending, oldest first."""
        claimable = await self.orders.query(RecordFilter(claimable_at=now, limit=limit))
        return [OrderView.at(order, now) for order in claimable]

    def _ensure_claimable(self, order: Order, now: datetime) -> None:
        status = order.effective_status(now)
        if status.is_terminal():
            raise TerminalStateError(str(order.id), status.value)
        if status != OrderStatus.PENDING:
            metrics.inc_counter("claims.conflict")
            raise ClaimConflict(str(order.id), order.provider_id)

    def _conflict_for(self, order: Order):
        def conflict(current: Optional[Order]) -> ClaimConflict:
            metrics.inc_counter("claims.conflict")
            holder = current.provider_id if current is not None else None
            return ClaimConflict(str(order.id), holder)

        return conflict
