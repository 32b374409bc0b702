"""
Unit tests for PlanCatalog.

The catalog is static, so these are plain synchronous tests.
"""

import pytest

from common.core.config import settings
from marketplace.billing.models.domain.enums import (
    MeteredResource,
    PlanChangeType,
    PlanId,
)
from marketplace.billing.services.plan_catalog import PlanCatalog, get_plan_catalog


@pytest.fixture
def catalog():
    return PlanCatalog()


class TestPlanLookup:
    def test_plans_are_ordered_by_tier(self, catalog):
        assert [plan.id for plan in catalog.list_plans()] == [
            PlanId.FREE,
            PlanId.PRO,
            PlanId.BUSINESS,
        ]

    def test_free_plan_limits(self, catalog):
        plan = catalog.get_plan(PlanId.FREE)

        assert plan.price_cents == 0
        assert plan.stripe_price_id is None
        assert plan.limits.max_products == 10
        assert plan.limits.max_orders_per_period == 50

    def test_pro_plan_has_unlimited_orders(self, catalog):
        plan = catalog.get_plan("pro")

        assert plan.id == PlanId.PRO
        assert plan.limits.max_products == 100
        assert plan.limits.max_orders_per_period is None

    def test_business_plan_is_unlimited(self, catalog):
        plan = catalog.get_plan(PlanId.BUSINESS)

        assert plan.limits.max_products is None
        assert plan.limits.max_orders_per_period is None

    @pytest.mark.parametrize("plan_id", [None, "", "enterprise", "FREE"])
    def test_unknown_plan_falls_back_to_free(self, catalog, plan_id):
        assert catalog.get_plan(plan_id).id == PlanId.FREE

    def test_price_round_trip(self, catalog):
        assert catalog.price_for_plan(PlanId.PRO) == settings.stripe_price_id_pro
        assert catalog.plan_for_price(settings.stripe_price_id_pro) == PlanId.PRO
        assert (
            catalog.plan_for_price(settings.stripe_price_id_business)
            == PlanId.BUSINESS
        )

    def test_unknown_price_has_no_plan(self, catalog):
        assert catalog.plan_for_price("price_unknown") is None
        assert catalog.plan_for_price(None) is None

    def test_get_plan_catalog_is_shared(self):
        assert get_plan_catalog() is get_plan_catalog()


class TestCheckLimit:
    def test_below_limit_is_allowed(self, catalog):
        check = catalog.check_limit(
            catalog.get_plan(PlanId.FREE), MeteredResource.PRODUCTS, 9
        )

        assert check.allowed is True
        assert check.limit == 10
        assert check.current == 9

    def test_at_limit_is_denied(self, catalog):
        check = catalog.check_limit(catalog.get_plan(PlanId.FREE), "products", 10)

        assert check.allowed is False
        assert check.limit == 10

    def test_unlimited_always_allows(self, catalog):
        check = catalog.check_limit(
            catalog.get_plan(PlanId.BUSINESS), MeteredResource.PRODUCTS, 10_000
        )

        assert check.allowed is True
        assert check.unlimited is True

    def test_orders_use_period_limit(self, catalog):
        check = catalog.check_limit(
            catalog.get_plan(PlanId.FREE), MeteredResource.ORDERS, 50
        )

        assert check.allowed is False
        assert check.limit == 50


class TestChangeType:
    @pytest.mark.parametrize(
        "from_plan,to_plan,expected",
        [
            (PlanId.FREE, PlanId.PRO, PlanChangeType.UPGRADE),
            (PlanId.PRO, PlanId.BUSINESS, PlanChangeType.UPGRADE),
            (PlanId.BUSINESS, PlanId.PRO, PlanChangeType.DOWNGRADE),
            (PlanId.PRO, PlanId.FREE, PlanChangeType.DOWNGRADE),
        ],
    )
    def test_change_type(self, from_plan, to_plan, expected):
        assert PlanCatalog.change_type(from_plan, to_plan) == expected


def test_plans_response_formats_prices(catalog):
    response = catalog.plans_response()

    by_id = {plan.id: plan for plan in response.plans}
    assert by_id[PlanId.FREE].price_formatted == "$0"
    assert by_id[PlanId.PRO].price_formatted == "$19"
    assert by_id[PlanId.BUSINESS].price_formatted == "$49"
    assert "Unlimited orders" in by_id[PlanId.PRO].features
