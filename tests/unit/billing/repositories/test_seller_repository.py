"""
Unit tests for the seller counts used by metering.
"""

import pytest
from datetime import timedelta

from common.core.time_utils import month_bounds
from marketplace.sellers.repositories.seller_repository import SellerRepository
from tests.factories.billing_factory import FIXED_NOW, add_orders, add_products


@pytest.mark.asyncio
class TestSellerRepository:
    async def test_get_all_ids(self, sample_seller, second_seller):
        repo = SellerRepository()

        assert await repo.get_all_ids() == [sample_seller.id, second_seller.id]

    async def test_count_live_products_ignores_deleted(self, test_db, sample_seller):
        await add_products(test_db, sample_seller.id, 4)
        await add_products(test_db, sample_seller.id, 2, deleted=True)

        assert await SellerRepository().count_live_products(sample_seller.id) == 4

    async def test_count_orders_between_is_half_open(self, test_db, sample_seller):
        period_start, period_end = month_bounds(FIXED_NOW)
        await add_orders(test_db, sample_seller.id, 3)
        await add_orders(test_db, sample_seller.id, 1, created_at=period_start)
        await add_orders(test_db, sample_seller.id, 2, created_at=period_end)
        await add_orders(
            test_db, sample_seller.id, 5, created_at=period_start - timedelta(days=1)
        )

        count = await SellerRepository().count_orders_between(
            sample_seller.id, period_start, period_end
        )

        assert count == 4

    async def test_counts_are_per_seller(self, test_db, sample_seller, second_seller):
        await add_products(test_db, second_seller.id, 7)

        assert await SellerRepository().count_live_products(sample_seller.id) == 0
