"""ClaimGate database layer."""

from claimgate.db.base import Base, async_session_factory, init_db
from claimgate.db.repositories import (
    CustomChargeRepository,
    OrderRepository,
    ProviderRepository,
)
from claimgate.db.store import Expected, ProviderStore, RecordFilter, RecordStore
from claimgate.db.tables import CustomChargeTable, OrderTable, ProviderTable

__all__ = [
    "Base",
    "CustomChargeRepository",
    "CustomChargeTable",
    "Expected",
    "OrderRepository",
    "OrderTable",
    "ProviderRepository",
    "ProviderStore",
    "ProviderTable",
    "RecordFilter",
    "RecordStore",
    "async_session_factory",
    "init_db",
]
