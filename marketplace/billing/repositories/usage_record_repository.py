"""
Repository for per-period usage records.
"""

from typing import Optional
from datetime import datetime
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from common.repositories.base import BaseRepository
from marketplace.billing.models.database.usage_record import UsageRecordEntity
from marketplace.billing.models.domain.usage import (
    UsageRecord,
    UsageRecordUpsertModel,
)
from common.core.otel_axiom_exporter import trace_span, get_logger

logger = get_logger(__name__)


class UsageRecordRepository(BaseRepository[UsageRecordEntity, UsageRecord]):
    """Repository for managing usage records (one per seller per period)."""

    def __init__(self, db_session: Optional[AsyncSession] = None):
        super().__init__(UsageRecordEntity, UsageRecord, db_session)

    def _period_query(self, seller_id: int, period_start: datetime):
        return select(UsageRecordEntity).where(
            UsageRecordEntity.seller_id == seller_id,
            UsageRecordEntity.period_start == period_start,
        )

    @trace_span
    async def get_for_period(
        self, seller_id: int, period_start: datetime
    ) -> Optional[UsageRecord]:
        async with self._get_session() as session:
            result = await session.execute(self._period_query(seller_id, period_start))
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def get_for_period_for_update(
        self, seller_id: int, period_start: datetime
    ) -> Optional[UsageRecord]:
        """Get the period's record and lock it. Must be called inside transaction()."""
        async with self._get_session() as session:
            entity = await self._lock_period(session, seller_id, period_start)
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def upsert(self, data: UsageRecordUpsertModel) -> UsageRecord:
        """
        Insert or update the record for (seller_id, period_start).

        The existing row is locked before it is rewritten. A concurrent
        insert of the same period loses on the unique constraint and falls
        back to updating the winner's row. Call inside transaction() to keep
        the lock for the rest of the unit of work.
        """
        values = data.model_dump()
        async with self._get_session() as session:
            entity = await self._lock_period(session, data.seller_id, data.period_start)
            if entity is None:
                try:
                    async with session.begin_nested():
                        entity = UsageRecordEntity(**values)
                        session.add(entity)
                        await session.flush()
                    await session.refresh(entity)
                    return self._entity_to_domain(entity)
                except IntegrityError:
                    logger.info(
                        f"Usage record for seller {data.seller_id} created concurrently, updating instead",
                        extra={"seller_id": data.seller_id},
                    )
                    entity = await self._lock_period(
                        session, data.seller_id, data.period_start
                    )

            for key, value in values.items():
                setattr(entity, key, value)
            await session.flush()
            await session.refresh(entity)
            return self._entity_to_domain(entity)

    async def _lock_period(
        self, session: AsyncSession, seller_id: int, period_start: datetime
    ) -> Optional[UsageRecordEntity]:
        result = await session.execute(
            self._period_query(seller_id, period_start)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @trace_span
    async def increment_warnings_sent(self, record_id: int) -> None:
        async with self._get_session() as session:
            await session.execute(
                update(UsageRecordEntity)
                .where(UsageRecordEntity.id == record_id)
                .values(warnings_sent=UsageRecordEntity.warnings_sent + 1)
                .execution_options(synchronize_session=False)
            )
            await session.flush()

    @trace_span
    async def get_history(
        self, seller_id: int, since: datetime
    ) -> list[UsageRecord]:
        """Get records whose period starts at or after ``since``, newest first."""
        async with self._get_session() as session:
            result = await session.execute(
                select(UsageRecordEntity)
                .where(
                    UsageRecordEntity.seller_id == seller_id,
                    UsageRecordEntity.period_start >= since,
                )
                .order_by(UsageRecordEntity.period_start.desc())
            )
            return self._entities_to_domain(result.scalars().all())
