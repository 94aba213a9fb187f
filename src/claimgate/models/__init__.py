"""ClaimGate data models."""

from claimgate.models.enums import (
    Action,
    ActorRole,
    ChargeStatus,
    NotificationEvent,
    OrderStatus,
)
from claimgate.models.actor import Actor
from claimgate.models.charge import CustomCharge
from claimgate.models.order import LocationDetails, Order, OrderItem, OrderView
from claimgate.models.provider import Provider
from claimgate.models.record import ClaimableRecord

__all__ = [
    "Action",
    "Actor",
    "ActorRole",
    "ChargeStatus",
    "ClaimableRecord",
    "CustomCharge",
    "LocationDetails",
    "NotificationEvent",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderView",
    "Provider",
]
