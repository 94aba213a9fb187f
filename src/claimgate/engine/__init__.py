"""ClaimGate engine - claim management, lifecycle state machine and service façade."""

from claimgate.engine.claims import ClaimManager
from claimgate.engine.core import TaskService
from claimgate.engine.errors import (
    ClaimConflict,
    ClaimGateError,
    ConcurrentUpdate,
    InvalidTransition,
    NotOwner,
    PaymentUnavailable,
    QuotaExceeded,
    StoreUnavailable,
    TaskNotFound,
    TerminalStateError,
)
from claimgate.engine.lifecycle import (
    CHARGE_LIFECYCLE,
    ORDER_LIFECYCLE,
    Lifecycle,
    LifecycleStateMachine,
    Transition,
)

__all__ = [
    "CHARGE_LIFECYCLE",
    "ClaimConflict",
    "ClaimGateError",
    "ClaimManager",
    "ConcurrentUpdate",
    "InvalidTransition",
    "Lifecycle",
    "LifecycleStateMachine",
    "NotOwner",
    "ORDER_LIFECYCLE",
    "PaymentUnavailable",
    "QuotaExceeded",
    "StoreUnavailable",
    "TaskNotFound",
    "TaskService",
    "TerminalStateError",
    "Transition",
]
