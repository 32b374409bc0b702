from datetime import timedelta

from marketplace.billing.models.domain.enums import (
    MeteredResource,
    PlanId,
    SellerAction,
    SubscriptionStatus,
)
from marketplace.billing.models.domain.subscription import Subscription
from marketplace.billing.models.domain.usage import ResourceUsage
from tests.factories.billing_factory import FIXED_NOW


def make_subscription(**overrides) -> Subscription:
    values = {
        "id": 1,
        "seller_id": 1,
        "plan_id": PlanId.PRO,
        "status": SubscriptionStatus.ACTIVE,
        "current_period_start": FIXED_NOW,
        "current_period_end": FIXED_NOW + timedelta(days=30),
        "created_at": FIXED_NOW,
        "updated_at": FIXED_NOW,
    }
    values.update(overrides)
    return Subscription(**values)


class TestSubscriptionStatusReconciliation:
    def test_reported_status_applies_without_grace(self):
        subscription = make_subscription()

        assert (
            subscription.reconcile_status(SubscriptionStatus.TRIALING)
            == SubscriptionStatus.TRIALING
        )

    def test_active_report_keeps_past_due_during_grace(self):
        subscription = make_subscription(
            status=SubscriptionStatus.PAST_DUE,
            grace_period_start=FIXED_NOW,
            grace_period_end=FIXED_NOW + timedelta(days=7),
        )

        assert (
            subscription.reconcile_status(SubscriptionStatus.ACTIVE)
            == SubscriptionStatus.PAST_DUE
        )

    def test_canceled_report_wins_over_grace(self):
        subscription = make_subscription(
            status=SubscriptionStatus.PAST_DUE,
            grace_period_end=FIXED_NOW + timedelta(days=7),
        )

        assert (
            subscription.reconcile_status(SubscriptionStatus.CANCELED)
            == SubscriptionStatus.CANCELED
        )


class TestSubscriptionHelpers:
    def test_canceled_subscription_is_metered_as_free(self):
        subscription = make_subscription(status=SubscriptionStatus.CANCELED)

        assert subscription.effective_plan_id == PlanId.FREE
        assert subscription.is_live() is False

    def test_grace_period_expired(self):
        subscription = make_subscription(
            status=SubscriptionStatus.PAST_DUE,
            grace_period_end=FIXED_NOW,
        )

        assert subscription.grace_period_expired(FIXED_NOW) is True
        assert subscription.grace_period_expired(FIXED_NOW - timedelta(seconds=1)) is False

    def test_days_until_renewal_never_negative(self):
        subscription = make_subscription(
            current_period_end=FIXED_NOW - timedelta(days=3)
        )

        assert subscription.days_until_renewal(FIXED_NOW) == 0
        assert make_subscription().days_until_renewal(FIXED_NOW) == 30


class TestResourceUsage:
    def test_exceeded_is_strict(self):
        at_limit = ResourceUsage(resource=MeteredResource.PRODUCTS, current=10, limit=10)
        over_limit = ResourceUsage(resource=MeteredResource.PRODUCTS, current=11, limit=10)

        assert at_limit.is_exceeded() is False
        assert at_limit.is_at_limit() is True
        assert over_limit.is_exceeded() is True

    def test_unlimited_never_warns(self):
        usage = ResourceUsage(resource=MeteredResource.ORDERS, current=10_000, limit=None)

        assert usage.unlimited is True
        assert usage.percentage == 0.0
        assert usage.warning_due(0.8) is False
        assert usage.is_exceeded() is False

    def test_warning_threshold(self):
        usage = ResourceUsage(resource=MeteredResource.ORDERS, current=40, limit=50)

        assert usage.percentage == 80.0
        assert usage.warning_due(0.8) is True
        assert usage.warning_due(0.9) is False


def test_seller_action_maps_to_resource():
    assert SellerAction.CREATE_PRODUCT.resource == MeteredResource.PRODUCTS
    assert SellerAction.PROCESS_ORDER.resource == MeteredResource.ORDERS


def test_plan_parse():
    assert PlanId.parse("business") == PlanId.BUSINESS
    assert PlanId.parse("gold") is None
    assert PlanId.parse(None) is None
