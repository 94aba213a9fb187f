"""
Claim tests: exclusivity, derived expiry, quota and admin assignment.
"""

import asyncio
import logging
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from claimgate.engine.claims import ClaimManager
from claimgate.engine.errors import (
    ClaimConflict,
    InvalidTransition,
    NotOwner,
    QuotaExceeded,
    TaskNotFound,
    TerminalStateError,
)
from claimgate.models import Actor, OrderStatus
from claimgate.observability.metrics import metrics

from tests.fakes import sample_items

CUSTOMER = Actor.customer("cust-1")
MECH_A = Actor.provider("mech-a")
MECH_B = Actor.provider("mech-b")
ADMIN = Actor.admin("admin-1")


async def submit(service, customer=CUSTOMER):
    return await service.submit_order(customer, items=sample_items(), total_price=Decimal("79.99"))


async def test_claim_sets_claim_fields(service, clock):
    order = await submit(service)

    claimed = await service.claim(order.id, MECH_A)

    assert claimed.status == OrderStatus.CLAIMED
    assert claimed.provider_id == "mech-a"
    assert claimed.claimed_at == clock.now
    assert (claimed.claim_expires_at - clock.now).total_seconds() == 3600
    assert claimed.assigned_by_admin is False
    assert claimed.version == order.version + 1
    assert metrics.counter("claims.acquired") == 1


async def test_concurrent_claims_exactly_one_wins(service, orders):
    """Two simultaneous claims on one order: one winner, one ClaimConflict."""
    order = await submit(service)

    results = await asyncio.gather(
        service.claim(order.id, MECH_A),
        service.claim(order.id, MECH_B),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], ClaimConflict)

    stored = await orders.get(order.id)
    assert stored.status == OrderStatus.CLAIMED
    assert stored.provider_id == winners[0].provider_id


async def test_many_providers_racing_for_one_order(service, orders):
    order = await submit(service)
    racers = [Actor.provider(f"mech-{i}") for i in range(10)]

    results = await asyncio.gather(
        *(service.claim(order.id, racer) for racer in racers),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    assert len(winners) == 1
    assert all(isinstance(r, ClaimConflict) for r in results if isinstance(r, Exception))
    assert orders.writes == 1


async def test_claim_held_order_conflicts(service):
    order = await submit(service)
    await service.claim(order.id, MECH_A)

    with pytest.raises(ClaimConflict) as exc_info:
        await service.claim(order.id, MECH_B)

    assert exc_info.value.holder_id == "mech-a"


async def test_claim_missing_order(service):
    with pytest.raises(TaskNotFound):
        await service.claim(uuid4(), MECH_A)


async def test_claim_terminal_order(service):
    order = await submit(service)
    await service.cancel(order.id, CUSTOMER, reason="changed my mind")

    with pytest.raises(TerminalStateError):
        await service.claim(order.id, MECH_A)


async def test_claim_accepted_order_conflicts(service):
    order = await submit(service)
    await service.claim(order.id, MECH_A)
    await service.accept(order.id, MECH_A)

    with pytest.raises(ClaimConflict):
        await service.claim(order.id, MECH_B)


async def test_customer_cannot_claim(service):
    order = await submit(service)

    with pytest.raises(InvalidTransition):
        await service.claim(order.id, Actor.customer("cust-2"))


async def test_release_by_non_owner_leaves_record_unchanged(service, orders):
    order = await submit(service)
    claimed = await service.claim(order.id, MECH_A)

    with pytest.raises(NotOwner):
        await service.release(order.id, MECH_B)

    stored = await orders.get(order.id)
    assert stored == claimed


async def test_release_clears_claim(service):
    order = await submit(service)
    await service.claim(order.id, MECH_A)

    released = await service.release(order.id, MECH_A)

    assert released.status == OrderStatus.PENDING
    assert released.provider_id is None
    assert released.claimed_at is None
    assert released.claim_expires_at is None


async def test_release_unclaimed_order_is_invalid(service):
    order = await submit(service)

    with pytest.raises(InvalidTransition):
        await service.release(order.id, MECH_A)


# ============================================================================
# Expiry
# ============================================================================


async def test_claim_is_live_until_deadline(service, clock):
    order = await submit(service)
    await service.claim(order.id, MECH_A)

    clock.advance(3600)

    with pytest.raises(ClaimConflict):
        await service.claim(order.id, MECH_B)


async def test_expired_claim_can_be_taken_and_old_holder_loses_it(service, clock):
    order = await submit(service)
    await service.claim(order.id, MECH_A)

    clock.advance(3601)
    reclaimed = await service.claim(order.id, MECH_B)

    assert reclaimed.provider_id == "mech-b"
    assert reclaimed.claim_expires_at > clock.now

    with pytest.raises(NotOwner):
        await service.accept(order.id, MECH_A)


async def test_expired_holder_cannot_accept_or_release(service, clock):
    order = await submit(service)
    await service.claim(order.id, MECH_A)
    clock.advance(3601)

    with pytest.raises(InvalidTransition):
        await service.accept(order.id, MECH_A)
    with pytest.raises(InvalidTransition):
        await service.release(order.id, MECH_A)


async def test_get_order_reports_expired_claim_as_pending(service, clock):
    order = await submit(service)
    await service.claim(order.id, MECH_A)

    live = await service.get_order(order.id)
    assert live.effective_status == OrderStatus.CLAIMED
    assert live.claim_seconds_remaining == 3600
    assert live.claimable is False

    clock.advance(7200)
    lapsed = await service.get_order(order.id)
    assert lapsed.order.status == OrderStatus.CLAIMED
    assert lapsed.effective_status == OrderStatus.PENDING
    assert lapsed.claim_expired is True
    assert lapsed.claimable is True
    assert lapsed.claim_seconds_remaining is None


async def test_list_claimable_includes_lapsed_claims(service, clock):
    fresh = await submit(service)
    lapsed = await submit(service)
    held = await submit(service)

    await service.claim(lapsed.id, MECH_A)
    clock.advance(3601)
    await service.claim(held.id, MECH_B)

    claimable = await service.list_claimable()

    assert {view.order.id for view in claimable} == {fresh.id, lapsed.id}


async def test_list_claimable_limit_skips_live_claims(service, clock):
    held = await submit(service)
    await service.claim(held.id, MECH_A)
    clock.advance(1)
    first = await submit(service)
    clock.advance(1)
    await submit(service)

    claimable = await service.list_claimable(limit=1)

    assert [view.order.id for view in claimable] == [first.id]

async def test_is_expired_at_deadline(service, clock):
    order = await submit(service)
    claimed = await service.claim(order.id, MECH_A)
    deadline = claimed.claim_expires_at

    assert not ClaimManager.is_expired(order, clock.now + timedelta(days=1))
    assert not ClaimManager.is_expired(claimed, deadline)
    assert ClaimManager.is_expired(claimed, deadline + timedelta(seconds=1))


async def test_reclaiming_lapsed_claim_is_logged(service, clock, caplog):
    order = await submit(service)
    await service.claim(order.id, MECH_A)
    clock.advance(3601)

    with caplog.at_level(logging.INFO, logger="claimgate.engine.claims"):
        await service.claim(order.id, MECH_B)

    assert "reclaimed from expired holder mech-a" in caplog.text


async def test_list_my_claims_flags_lapsed_claims(service, clock):
    first = await submit(service)
    second = await submit(service)

    await service.claim(first.id, MECH_A)
    clock.advance(1800)
    await service.claim(second.id, MECH_A)
    clock.advance(1801)

    views = {view.order.id: view for view in await service.list_my_claims(MECH_A)}

    assert views[first.id].claim_expired is True
    assert views[second.id].claim_expired is False
    assert await service.list_my_claims(CUSTOMER) == []


# ============================================================================
# Quota
# ============================================================================


async def test_third_live_claim_exceeds_quota(service):
    orders = [await submit(service) for _ in range(3)]
    await service.claim(orders[0].id, MECH_A)
    await service.claim(orders[1].id, MECH_A)

    with pytest.raises(QuotaExceeded) as exc_info:
        await service.claim(orders[2].id, MECH_A)

    assert exc_info.value.limit == 2
    assert metrics.counter("claims.quota_exceeded") == 1


async def test_expired_claims_do_not_count_toward_quota(service, clock):
    orders = [await submit(service) for _ in range(3)]
    await service.claim(orders[0].id, MECH_A)
    await service.claim(orders[1].id, MECH_A)

    clock.advance(3601)

    claimed = await service.claim(orders[2].id, MECH_A)
    assert claimed.provider_id == "mech-a"


async def test_accepted_work_does_not_count_toward_quota(service):
    orders = [await submit(service) for _ in range(3)]
    await service.claim(orders[0].id, MECH_A)
    await service.accept(orders[0].id, MECH_A)
    await service.claim(orders[1].id, MECH_A)

    claimed = await service.claim(orders[2].id, MECH_A)
    assert claimed.status == OrderStatus.CLAIMED


# ============================================================================
# Admin assignment
# ============================================================================


async def test_admin_assign_bypasses_quota(service):
    orders = [await submit(service) for _ in range(3)]
    await service.claim(orders[0].id, MECH_A)
    await service.claim(orders[1].id, MECH_A)

    assigned = await service.assign(orders[2].id, "mech-a", ADMIN)

    assert assigned.provider_id == "mech-a"
    assert assigned.assigned_by_admin is True
    assert assigned.status == OrderStatus.CLAIMED


async def test_assign_requires_admin(service):
    order = await submit(service)

    with pytest.raises(InvalidTransition):
        await service.assign(order.id, "mech-a", MECH_B)


async def test_assign_held_order_conflicts(service):
    order = await submit(service)
    await service.claim(order.id, MECH_A)

    with pytest.raises(ClaimConflict):
        await service.assign(order.id, "mech-b", ADMIN)


async def test_assigned_provider_can_accept(service, providers):
    order = await submit(service)
    await service.assign(order.id, "mech-b", ADMIN)

    accepted = await service.accept(order.id, MECH_B)

    assert accepted.status == OrderStatus.ACCEPTED
    assert providers.providers["mech-b"].accepted_job_count == 1


# ============================================================================
# End to end
# ============================================================================


async def test_claim_release_reclaim_flow(service, orders):
    """create -> claim A -> claim B conflicts -> release A -> claim B."""
    order = await submit(service)

    await service.claim(order.id, MECH_A)
    with pytest.raises(ClaimConflict):
        await service.claim(order.id, MECH_B)

    await service.release(order.id, MECH_A)
    claimed = await service.claim(order.id, MECH_B)

    assert claimed.provider_id == "mech-b"
    stored = await orders.get(order.id)
    assert stored.status == OrderStatus.CLAIMED
    assert stored.version == 3
