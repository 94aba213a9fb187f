"""Transition-table state machine shared by orders and custom charges.

A ``Lifecycle`` is data: the allowed ``(state, action, role) -> state`` edges
plus the terminal set. ``LifecycleStateMachine`` validates a call against it,
asks the entity's hooks for the write patch, commits a single conditional
write guarded by the version and status that were read, then runs the
post-commit hooks.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Generic, Iterable, Optional, Protocol

from claimgate.db.store import Expected, R, RecordStore, Status
from claimgate.engine.errors import (
    ClaimGateError,
    ConcurrentUpdate,
    InvalidTransition,
    NotOwner,
    TaskNotFound,
    TerminalStateError,
)
from claimgate.models import Action, Actor, ActorRole, ChargeStatus, OrderStatus
from claimgate.observability.metrics import metrics

logger = logging.getLogger(__name__)

# Roles whose calls are checked against the record's owning party
OWNED_ROLES = frozenset({ActorRole.PROVIDER, ActorRole.CUSTOMER})


@dataclass(frozen=True)
class Transition:
    """One edge of a lifecycle."""

    source: Status
    action: Action
    roles: frozenset[ActorRole]
    target: Status
    owner_checked: bool = True


def edge(
    source: Status,
    action: Action,
    target: Status,
    *roles: ActorRole,
    owner_checked: bool = True,
) -> Transition:
    return Transition(source, action, frozenset(roles), target, owner_checked)


class Lifecycle:
    """A fixed set of transitions and terminal states."""

    def __init__(self, name: str, transitions: Iterable[Transition], terminal_states: Iterable[Status]):
        self.name = name
        self.transitions = tuple(transitions)
        self.terminal_states = frozenset(terminal_states)

    def is_terminal(self, status: Status) -> bool:
        return status in self.terminal_states

    def resolve(self, status: Status, action: Action, role: ActorRole) -> Transition:
        """Find the edge for ``(status, action, role)`` or raise InvalidTransition."""
        for transition in self.transitions:
            if transition.source == status and transition.action == action and role in transition.roles:
                return transition
        raise InvalidTransition(status.value, action.value, role.value)

    def allowed_actions(self, status: Status, role: ActorRole) -> set[Action]:
        return {t.action for t in self.transitions if t.source == status and role in t.roles}


ORDER_LIFECYCLE = Lifecycle(
    "order",
    [
        edge(OrderStatus.PENDING, Action.CLAIM, OrderStatus.CLAIMED, ActorRole.PROVIDER, owner_checked=False),
        edge(OrderStatus.PENDING, Action.ASSIGN, OrderStatus.CLAIMED, ActorRole.ADMIN),
        edge(OrderStatus.CLAIMED, Action.RELEASE, OrderStatus.PENDING, ActorRole.PROVIDER),
        edge(OrderStatus.CLAIMED, Action.ACCEPT, OrderStatus.ACCEPTED, ActorRole.PROVIDER),
        edge(OrderStatus.ACCEPTED, Action.START, OrderStatus.IN_PROGRESS, ActorRole.PROVIDER),
        edge(OrderStatus.ACCEPTED, Action.CANCEL, OrderStatus.CANCELLED, ActorRole.PROVIDER),
        edge(OrderStatus.IN_PROGRESS, Action.COMPLETE, OrderStatus.COMPLETED, ActorRole.PROVIDER),
        edge(OrderStatus.IN_PROGRESS, Action.CANCEL, OrderStatus.CANCELLED, ActorRole.PROVIDER),
        edge(OrderStatus.PENDING, Action.CANCEL, OrderStatus.CANCELLED, ActorRole.CUSTOMER, ActorRole.ADMIN),
    ],
    OrderStatus.terminal_states(),
)

CHARGE_LIFECYCLE = Lifecycle(
    "custom_charge",
    [
        edge(
            ChargeStatus.PENDING_APPROVAL,
            Action.APPROVE,
            ChargeStatus.APPROVED_PENDING_PAYMENT,
            ActorRole.CUSTOMER,
        ),
        edge(
            ChargeStatus.APPROVED_PENDING_PAYMENT,
            Action.CONFIRM_PAYMENT,
            ChargeStatus.ACCEPTED,
            ActorRole.SYSTEM,
        ),
        edge(
            ChargeStatus.PENDING_APPROVAL,
            Action.DECLINE,
            ChargeStatus.DECLINED_BY_CUSTOMER,
            ActorRole.CUSTOMER,
        ),
        edge(
            ChargeStatus.PENDING_APPROVAL,
            Action.CANCEL,
            ChargeStatus.CANCELLED_BY_MECHANIC,
            ActorRole.PROVIDER,
        ),
    ],
    ChargeStatus.terminal_states(),
)


class LifecycleHooks(Protocol[R]):
    """Entity-specific behaviour plugged into the generic state machine."""

    async def prepare(
        self,
        transition: Transition,
        record: R,
        actor: Actor,
        now: datetime,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """Return the field patch for this transition (status is added by the machine)."""
        ...

    async def committed(self, transition: Transition, before: R, after: R, actor: Actor) -> None:
        """Side effects after the write is durable. Must not raise."""
        ...

    async def abandoned(self, transition: Transition, record: R, patch: dict[str, Any]) -> None:
        """The conditional write lost; undo or report anything ``prepare`` did."""
        ...


ConflictFactory = Callable[[Optional[Any]], ClaimGateError]


class LifecycleStateMachine(Generic[R]):
    """Validates and applies transitions for one record type."""

    def __init__(
        self,
        lifecycle: Lifecycle,
        store: RecordStore[R],
        hooks: LifecycleHooks[R],
        status_view: Optional[Callable[[R, datetime], Status]] = None,
    ):
        self.lifecycle = lifecycle
        self.store = store
        self.hooks = hooks
        self._status_view = status_view or (lambda record, now: record.status)

    def status_of(self, record: R, now: datetime) -> Status:
        """Status used for validation (orders read an expired claim as Pending)."""
        return self._status_view(record, now)

    async def load(self, record_id) -> R:
        record = await self.store.get(record_id)
        if record is None:
            raise TaskNotFound(str(record_id))
        return record

    def validate(self, record: R, action: Action, actor: Actor, now: datetime) -> Transition:
        """Check terminal state, then the transition table, then ownership."""
        status = self.status_of(record, now)
        if self.lifecycle.is_terminal(status):
            raise TerminalStateError(str(record.id), status.value)

        transition = self.lifecycle.resolve(status, action, actor.role)

        if transition.owner_checked and actor.role in OWNED_ROLES:
            if record.owner_for(actor.role) != actor.id:
                raise NotOwner(str(record.id), actor.id)
        return transition

    async def apply(
        self,
        record_id,
        action: Action,
        actor: Actor,
        now: datetime,
        params: Optional[dict[str, Any]] = None,
    ) -> R:
        """Load a record and apply ``action`` to it."""
        record = await self.load(record_id)
        return await self.apply_to(record, action, actor, now, params)

    async def apply_to(
        self,
        record: R,
        action: Action,
        actor: Actor,
        now: datetime,
        params: Optional[dict[str, Any]] = None,
        on_conflict: Optional[ConflictFactory] = None,
    ) -> R:
        """Apply ``action`` to an already-read record with one conditional write."""
        transition = self.validate(record, action, actor, now)

        patch = await self.hooks.prepare(transition, record, actor, now, params or {})
        patch["status"] = transition.target

        updated = await self.store.conditional_update(record.id, Expected.of(record), patch)
        if updated is None:
            await self.hooks.abandoned(transition, record, patch)
            raise await self._conflict(record, action, actor, now, on_conflict)

        metrics.inc_counter("transitions.applied", entity=self.lifecycle.name, action=action.value)
        logger.info(
            "%s %s: %s -> %s (%s by %s)",
            self.lifecycle.name,
            record.id,
            record.status.value,
            transition.target.value,
            action.value,
            actor.id,
        )

        await self.hooks.committed(transition, record, updated, actor)
        return updated

    async def _conflict(
        self,
        record: R,
        action: Action,
        actor: Actor,
        now: datetime,
        on_conflict: Optional[ConflictFactory],
    ) -> ClaimGateError:
        """Classify a lost conditional write by re-reading the record once."""
        metrics.inc_counter("transitions.conflict", entity=self.lifecycle.name, action=action.value)
        current = await self.store.get(record.id)
        logger.info(
            "%s %s: conditional %s lost (read version %d, now %s)",
            self.lifecycle.name,
            record.id,
            action.value,
            record.version,
            current.version if current else "missing",
        )
        if on_conflict is not None:
            return on_conflict(current)
        if current is None:
            return TaskNotFound(str(record.id))
        try:
            self.validate(current, action, actor, now)
        except ClaimGateError as exc:
            return exc
        return ConcurrentUpdate(self.status_of(current, now).value, action.value)
