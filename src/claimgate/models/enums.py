"""ClaimGate enumerations."""

from enum import Enum


class OrderStatus(str, Enum):
    """Repair order lifecycle status."""

    PENDING = "Pending"
    CLAIMED = "Claimed"
    ACCEPTED = "Accepted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @classmethod
    def terminal_states(cls) -> set["OrderStatus"]:
        """Return terminal states."""
        return {cls.COMPLETED, cls.CANCELLED}

    def is_terminal(self) -> bool:
        return self in self.terminal_states()

    @classmethod
    def parse(cls, raw: "str | OrderStatus") -> "OrderStatus":
        """Parse a stored status, translating legacy spellings."""
        return _parse(cls, raw, LEGACY_ORDER_STATUS)

    def spellings(self) -> list[str]:
        """Canonical value plus every legacy spelling that maps to it."""
        return _spellings(self, LEGACY_ORDER_STATUS)


class ChargeStatus(str, Enum):
    """Custom charge (ad-hoc quote) lifecycle status."""

    PENDING_APPROVAL = "PendingApproval"
    APPROVED_PENDING_PAYMENT = "ApprovedAndPendingPayment"
    ACCEPTED = "Accepted"
    DECLINED_BY_CUSTOMER = "DeclinedByCustomer"
    CANCELLED_BY_MECHANIC = "CancelledByMechanic"

    @classmethod
    def terminal_states(cls) -> set["ChargeStatus"]:
        """Return terminal states."""
        return {cls.ACCEPTED, cls.DECLINED_BY_CUSTOMER, cls.CANCELLED_BY_MECHANIC}

    def is_terminal(self) -> bool:
        return self in self.terminal_states()

    @classmethod
    def parse(cls, raw: "str | ChargeStatus") -> "ChargeStatus":
        """Parse a stored status, translating legacy spellings."""
        return _parse(cls, raw, LEGACY_CHARGE_STATUS)

    def spellings(self) -> list[str]:
        return _spellings(self, LEGACY_CHARGE_STATUS)


# Spellings found in older persisted records.
LEGACY_ORDER_STATUS: dict[str, OrderStatus] = {
    "Waiting": OrderStatus.PENDING,
    "pending": OrderStatus.PENDING,
    "In Progress": OrderStatus.IN_PROGRESS,
    "in_progress": OrderStatus.IN_PROGRESS,
    "inprogress": OrderStatus.IN_PROGRESS,
    "Scheduled": OrderStatus.ACCEPTED,
    "Canceled": OrderStatus.CANCELLED,
    "cancelled": OrderStatus.CANCELLED,
}

LEGACY_CHARGE_STATUS: dict[str, ChargeStatus] = {
    "Paid": ChargeStatus.ACCEPTED,
}


def _parse(enum_cls, raw, legacy: dict):
    if isinstance(raw, enum_cls):
        return raw
    if raw in legacy:
        return legacy[raw]
    return enum_cls(raw)


def _spellings(member, legacy: dict) -> list[str]:
    return [member.value] + [old for old, new in legacy.items() if new is member]


class ActorRole(str, Enum):
    """Role of the authenticated caller."""

    CUSTOMER = "customer"
    PROVIDER = "provider"
    ADMIN = "admin"
    # Payment gateway callbacks and other trusted automation
    SYSTEM = "system"


class Action(str, Enum):
    """Lifecycle actions."""

    CLAIM = "claim"
    ASSIGN = "assign"
    RELEASE = "release"
    ACCEPT = "accept"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"
    APPROVE = "approve"
    DECLINE = "decline"
    CONFIRM_PAYMENT = "confirm_payment"


class NotificationEvent(str, Enum):
    """Events pushed to customers and providers."""

    ORDER_CLAIMED = "order.claimed"
    ORDER_RELEASED = "order.released"
    ORDER_ACCEPTED = "order.accepted"
    ORDER_STARTED = "order.started"
    ORDER_COMPLETED = "order.completed"
    ORDER_CANCELLED = "order.cancelled"
    CHARGE_CREATED = "charge.created"
    CHARGE_APPROVED = "charge.approved"
    CHARGE_DECLINED = "charge.declined"
    CHARGE_CANCELLED = "charge.cancelled"
    CHARGE_PAID = "charge.paid"
    CHARGE_PAYMENT_FAILED = "charge.payment_failed"
