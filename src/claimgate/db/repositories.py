"""Database repositories implementing the task store contract."""

import logging
from contextlib import asynccontextmanager
from enum import Enum
from time import perf_counter
from typing import Any, AsyncIterator, Generic, Optional
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import DateTime, and_, or_, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from claimgate.db.store import PROVIDER_COUNTERS, Expected, R, RecordFilter
from claimgate.db.tables import CustomChargeTable, OrderTable, ProviderTable
from claimgate.engine.errors import StoreUnavailable
from claimgate.models import CustomCharge, Order, OrderStatus, Provider
from claimgate.observability.metrics import metrics
from claimgate.utils.time import ensure_utc, utc_now

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _store_errors(operation: str) -> AsyncIterator[None]:
    """Translate connectivity failures into StoreUnavailable."""
    try:
        yield
    except (OperationalError, InterfaceError, ConnectionError, TimeoutError) as exc:
        metrics.inc_counter("store.unavailable", operation=operation)
        logger.error("Task store %s failed: %s", operation, exc)
        raise StoreUnavailable(type(exc).__name__) from exc


def _to_column(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_to_column(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


class RecordRepository(Generic[R]):
    """Conditional-write repository for one claimable record table.

    Each call opens its own session and commits before returning, so no
    operation spans more than one record write.
    """

    table: Any
    model: type[R]
    json_columns: tuple[str, ...] = ()

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, record_id: UUID) -> Optional[R]:
        """Get a record by ID."""
        async with _store_errors("get"), self.session_factory() as session:
            row = await session.get(self.table, record_id)
            return self._row_to_model(row) if row else None

    async def query(self, record_filter: RecordFilter) -> list[R]:
        """List records matching a filter, oldest first."""
        query = select(self.table)

        if record_filter.statuses is not None:
            spellings = [s for status in record_filter.statuses for s in status.spellings()]
            query = query.where(self.table.status.in_(spellings))
        if record_filter.provider_id is not None:
            query = query.where(self.table.provider_id == record_filter.provider_id)
        if record_filter.customer_id is not None:
            query = query.where(self.table.customer_id == record_filter.customer_id)
        if record_filter.payment_intent_ref is not None:
            query = query.where(self.table.payment_intent_ref == record_filter.payment_intent_ref)
        if record_filter.claim_expires_after is not None:
            query = query.where(self.table.claim_expires_at >= record_filter.claim_expires_after)
        if record_filter.claimable_at is not None:
            query = query.where(
                or_(
                    self.table.status.in_(OrderStatus.PENDING.spellings()),
                    and_(
                        self.table.status.in_(OrderStatus.CLAIMED.spellings()),
                        self.table.claim_expires_at < record_filter.claimable_at,
                    ),
                )
            )

        query = query.order_by(self.table.created_at.asc())
        if record_filter.limit:
            query = query.limit(record_filter.limit)

        async with _store_errors("query"), self.session_factory() as session:
            result = await session.execute(query)
            return [self._row_to_model(r) for r in result.scalars().all()]

    async def insert(self, record: R) -> R:
        """Insert a new record."""
        values = {key: _to_column(value) for key, value in record.model_dump().items()}
        # JSON columns need JSON-safe values (Decimal prices inside items)
        for key in self.json_columns:
            values[key] = record.model_dump(mode="json", include={key})[key]

        async with _store_errors("insert"), self.session_factory() as session:
            session.add(self.table(**values))
            await session.commit()
        return record

    async def conditional_update(
        self,
        record_id: UUID,
        expected: Expected,
        patch: dict[str, Any],
    ) -> Optional[R]:
        """Compare-and-swap: apply ``patch`` only if version and status still match."""
        values = {key: _to_column(value) for key, value in patch.items()}
        values["version"] = expected.version + 1
        values.setdefault("updated_at", utc_now())

        stmt = (
            update(self.table)
            .where(
                self.table.id == record_id,
                self.table.version == expected.version,
                self.table.status.in_(expected.status.spellings()),
            )
            .values(**values)
            .returning(self.table)
            .execution_options(synchronize_session=False)
        )

        start = perf_counter()
        async with _store_errors("conditional_update"), self.session_factory() as session:
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            await session.commit()
        metrics.observe("store.cas.duration_ms", (perf_counter() - start) * 1000.0)

        if row is None:
            metrics.inc_counter("store.cas.conflict", table=self.table.__tablename__)
            return None
        return self._row_to_model(row)

    def _row_to_model(self, row: Any) -> R:
        """Convert database row to model."""
        data = {}
        for column in self.table.__table__.columns:
            value = getattr(row, column.key)
            if isinstance(column.type, DateTime):
                value = ensure_utc(value)
            data[column.key] = value
        return self.model.model_validate(data)


class OrderRepository(RecordRepository[Order]):
    """Repository for repair orders."""

    table = OrderTable
    model = Order
    json_columns = ("items", "location_details", "categories")


class CustomChargeRepository(RecordRepository[CustomCharge]):
    """Repository for custom charges."""

    table = CustomChargeTable
    model = CustomCharge


class ProviderRepository:
    """Repository for provider job counters."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, provider_id: str) -> Optional[Provider]:
        async with _store_errors("provider_get"), self.session_factory() as session:
            row = await session.get(ProviderTable, provider_id)
            return self._row_to_model(row) if row else None

    async def increment(self, provider_id: str, counter: str) -> Provider:
        """
        Atomically add one to a provider counter.

        Profiles are owned elsewhere, so the row may not exist yet. Insert it
        on first use; if a concurrent increment inserted first, fall back to
        the update path.
        """
        if counter not in PROVIDER_COUNTERS:
            raise ValueError(f"Unknown provider counter: {counter}")

        async with _store_errors("provider_increment"):
            row = await self._increment_existing(provider_id, counter)
            if row is not None:
                return row

            now = utc_now()
            try:
                async with self.session_factory() as session:
                    values = {name: 0 for name in PROVIDER_COUNTERS}
                    values[counter] = 1
                    session.add(ProviderTable(id=provider_id, updated_at=now, **values))
                    await session.commit()
                return Provider(id=provider_id, updated_at=now, **values)
            except IntegrityError:
                row = await self._increment_existing(provider_id, counter)
                if row is None:
                    raise
                return row

    async def _increment_existing(self, provider_id: str, counter: str) -> Optional[Provider]:
        column = getattr(ProviderTable, counter)
        stmt = (
            update(ProviderTable)
            .where(ProviderTable.id == provider_id)
            .values({counter: column + 1, "updated_at": utc_now()})
            .returning(ProviderTable)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
            await session.commit()
        return self._row_to_model(row) if row else None

    def _row_to_model(self, row: ProviderTable) -> Provider:
        return Provider(
            id=row.id,
            accepted_job_count=row.accepted_job_count,
            completed_job_count=row.completed_job_count,
            updated_at=ensure_utc(row.updated_at),
        )
