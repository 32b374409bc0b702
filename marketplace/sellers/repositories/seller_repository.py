from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import trace_span
from common.repositories.base import BaseRepository
from marketplace.sellers.models.database.order import OrderEntity
from marketplace.sellers.models.database.product import ProductEntity
from marketplace.sellers.models.database.seller import SellerEntity
from marketplace.sellers.models.domain.seller import Seller


class SellerRepository(BaseRepository[SellerEntity, Seller]):
    """Seller lookups plus the resource counts metered by billing."""

    def __init__(self, db_session: Optional[AsyncSession] = None):
        super().__init__(SellerEntity, Seller, db_session)

    @trace_span
    async def get_all_ids(self) -> List[int]:
        async with self._get_session() as session:
            result = await session.execute(
                select(SellerEntity.id).order_by(SellerEntity.id)
            )
            return list(result.scalars().all())

    @trace_span
    async def count_live_products(self, seller_id: int) -> int:
        """Count products that are not soft-deleted."""
        async with self._get_session() as session:
            result = await session.execute(
                select(func.count(ProductEntity.id)).where(
                    ProductEntity.seller_id == seller_id,
                    ProductEntity.deleted == False,  # noqa
                )
            )
            return result.scalar() or 0

    @trace_span
    async def count_orders_between(
        self, seller_id: int, start: datetime, end: datetime
    ) -> int:
        """Count orders created in [start, end)."""
        async with self._get_session() as session:
            result = await session.execute(
                select(func.count(OrderEntity.id)).where(
                    OrderEntity.seller_id == seller_id,
                    OrderEntity.created_at >= start,
                    OrderEntity.created_at < end,
                )
            )
            return result.scalar() or 0
