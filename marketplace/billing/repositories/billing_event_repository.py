"""
Repository for the append-only billing event log.
"""

from typing import Optional
from datetime import datetime
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from common.repositories.base import BaseRepository
from marketplace.billing.models.database.billing_event import BillingEventEntity
from marketplace.billing.models.domain.billing_event import (
    BillingEvent,
    BillingEventCreateModel,
)
from common.core.otel_axiom_exporter import trace_span


class BillingEventRepository(BaseRepository[BillingEventEntity, BillingEvent]):
    """Billing events are only ever inserted, never updated or deleted."""

    def __init__(self, db_session: Optional[AsyncSession] = None):
        super().__init__(BillingEventEntity, BillingEvent, db_session)

    @trace_span
    async def exists_external_event(self, external_event_id: str) -> bool:
        async with self._get_session() as session:
            result = await session.execute(
                select(func.count(BillingEventEntity.id)).where(
                    BillingEventEntity.external_event_id == external_event_id
                )
            )
            return (result.scalar() or 0) > 0

    @trace_span
    async def append_once(
        self, create_model: BillingEventCreateModel
    ) -> Optional[BillingEvent]:
        """
        Append an event carrying an external_event_id.

        Returns None when another delivery of the same event already
        recorded it. Runs in a savepoint so the caller's transaction stays
        usable after the unique-constraint violation.
        """
        async with self._get_session() as session:
            db_obj = BillingEventEntity(**create_model.model_dump(exclude_none=True))
            try:
                async with session.begin_nested():
                    session.add(db_obj)
                    await session.flush()
            except IntegrityError:
                return None
            await session.refresh(db_obj)
            return self._entity_to_domain(db_obj)

    @trace_span
    async def get_latest(
        self, seller_id: int, event_type: str, since: Optional[datetime] = None
    ) -> Optional[BillingEvent]:
        query = select(BillingEventEntity).where(
            BillingEventEntity.seller_id == seller_id,
            BillingEventEntity.event_type == event_type,
        )
        if since is not None:
            query = query.where(BillingEventEntity.processed_at >= since)
        query = query.order_by(
            BillingEventEntity.processed_at.desc(), BillingEventEntity.id.desc()
        ).limit(1)

        async with self._get_session() as session:
            result = await session.execute(query)
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def list_for_seller(
        self, seller_id: int, limit: int = 50
    ) -> list[BillingEvent]:
        async with self._get_session() as session:
            result = await session.execute(
                select(BillingEventEntity)
                .where(BillingEventEntity.seller_id == seller_id)
                .order_by(BillingEventEntity.id.desc())
                .limit(limit)
            )
            return self._entities_to_domain(result.scalars().all())
