"""
Repository for plan change history.
"""

from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from common.repositories.base import BaseRepository
from marketplace.billing.models.database.plan_change_request import (
    PlanChangeRequestEntity,
)
from marketplace.billing.models.domain.subscription import PlanChangeRequest
from common.core.otel_axiom_exporter import trace_span


class PlanChangeRepository(BaseRepository[PlanChangeRequestEntity, PlanChangeRequest]):
    def __init__(self, db_session: Optional[AsyncSession] = None):
        super().__init__(PlanChangeRequestEntity, PlanChangeRequest, db_session)

    @trace_span
    async def list_for_seller(self, seller_id: int) -> list[PlanChangeRequest]:
        async with self._get_session() as session:
            result = await session.execute(
                select(PlanChangeRequestEntity)
                .where(PlanChangeRequestEntity.seller_id == seller_id)
                .order_by(PlanChangeRequestEntity.id)
            )
            return self._entities_to_domain(result.scalars().all())
