# storesync/services/persistence.py
"""
Idempotent persistence of canonical records.

Each record is written with one INSERT ... ON CONFLICT DO UPDATE keyed on
(native id, store_type, store_name), in its own session and transaction.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy import func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from storesync.core.enums import EntityType, PlatformType
from storesync.core.exceptions import PersistenceError
from storesync.core.utils import utc_now
from storesync.models import ENTITY_MODELS, Order
from storesync.schemas.records import CustomerRecord, OrderRecord, ProductRecord

logger = logging.getLogger(__name__)

CanonicalRecord = Union[OrderRecord, ProductRecord, CustomerRecord]

# Columns an update never touches
PROTECTED_COLUMNS = {"id", "store_type", "store_name", "first_synced_at"}


@dataclass
class UpsertReport:
    saved: int = 0
    errors: List[str] = field(default_factory=list)


class RecordUpserter:
    def __init__(self, session_factory: async_sessionmaker, concurrency: int = 5):
        self.session_factory = session_factory
        self.concurrency = max(concurrency, 1)

    def _build_statement(self, dialect_name: str, record: CanonicalRecord):
        model, id_column = ENTITY_MODELS[record.entity_type]
        now = utc_now()
        row = record.to_row()
        row["first_synced_at"] = now
        row["synced_at"] = now

        insert = pg_insert if dialect_name == "postgresql" else sqlite_insert
        stmt = insert(model).values(**row)

        protected = PROTECTED_COLUMNS | {id_column}
        updates: Dict[str, Any] = {
            column: stmt.excluded[column] for column in row if column not in protected
        }
        if record.entity_type == EntityType.ORDERS:
            # Order creation time is fixed once known
            updates["created_at"] = func.coalesce(model.created_at, stmt.excluded.created_at)

        return stmt.on_conflict_do_update(
            index_elements=[id_column, "store_type", "store_name"],
            set_=updates,
        )

    async def upsert(self, record: CanonicalRecord) -> None:
        """
        Insert or update one record by its natural key.

        Raises:
            PersistenceError: the write failed; the transaction was rolled back
        """
        platform, store_name, native_id = record.natural_key
        async with self.session_factory() as session:
            try:
                stmt = self._build_statement(session.bind.dialect.name, record)
                await session.execute(stmt)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise PersistenceError(
                    f"Failed to save {record.entity_type.value[:-1]} {native_id} ({platform}/{store_name}): {e}"
                ) from e

    async def upsert_many(
        self,
        records: Sequence[CanonicalRecord],
        concurrency: Optional[int] = None,
    ) -> UpsertReport:
        """Upsert every record with bounded concurrency; failures are collected, not raised."""
        report = UpsertReport()
        if not records:
            return report

        semaphore = asyncio.Semaphore(max(concurrency or self.concurrency, 1))

        async def _save(record: CanonicalRecord) -> Optional[str]:
            async with semaphore:
                try:
                    await self.upsert(record)
                    return None
                except PersistenceError as e:
                    logger.error(str(e))
                    return str(e)

        outcomes = await asyncio.gather(*[_save(record) for record in records])
        for outcome in outcomes:
            if outcome is None:
                report.saved += 1
            else:
                report.errors.append(outcome)

        logger.info(f"Saved {report.saved}/{len(records)} records ({len(report.errors)} failed)")
        return report

    async def load_order_buyers(self, platform: PlatformType, store_name: str) -> List[Dict[str, Any]]:
        """Stored orders with a known buyer, for deriving customers."""
        stmt = (
            select(
                Order.buyer_username,
                Order.buyer_email,
                Order.total_price,
                Order.created_at,
                Order.shipping_address,
            )
            .where(Order.store_type == PlatformType(platform).value)
            .where(Order.store_name == store_name)
            .where(or_(Order.buyer_username.isnot(None), Order.buyer_email.isnot(None)))
            .order_by(Order.created_at)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load {platform} orders for {store_name}: {e}") from e
