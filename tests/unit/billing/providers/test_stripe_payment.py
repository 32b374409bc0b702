"""
Unit tests for StripePaymentProvider.
"""

import time
from datetime import timedelta
import pytest
from unittest.mock import MagicMock, patch

import stripe

from common.core.config import settings
from common.core.exceptions import PaymentProviderError, WebhookVerificationError
from marketplace.billing.models.domain.enums import (
    BillingEventKind,
    SubscriptionStatus,
)
from marketplace.billing.providers.payment.stripe_payment import StripePaymentProvider
from tests.factories.billing_factory import (
    FIXED_NOW,
    WEBHOOK_SECRET,
    sign_payload,
    stripe_event,
    stripe_subscription_object,
)


@pytest.fixture
def provider():
    return StripePaymentProvider(
        api_key="sk_test_123", webhook_secret=WEBHOOK_SECRET, timeout_seconds=5
    )


def invoice_object(seller_id="7", legacy=False, **overrides):
    obj = {
        "id": "in_test123",
        "object": "invoice",
        "customer": "cus_test123",
        "status": "open",
        "amount_due": 1900,
        "amount_paid": 0,
        "currency": "usd",
    }
    details = {"subscription": "sub_test123", "metadata": {"seller_id": seller_id}}
    if legacy:
        obj["subscription"] = "sub_test123"
        obj["subscription_details"] = details
    else:
        obj["parent"] = {"type": "subscription_details", "subscription_details": details}
    obj.update(overrides)
    return obj


class TestParseEvent:
    def test_subscription_event(self, provider):
        payload = stripe_event(
            "customer.subscription.updated",
            stripe_subscription_object(seller_id=7),
            event_id="evt_abc",
        )

        event = provider.parse_event(payload, sign_payload(payload))

        assert event.external_event_id == "evt_abc"
        assert event.kind == BillingEventKind.SUBSCRIPTION_UPDATED
        assert event.seller_id == 7
        assert event.created_at == FIXED_NOW
        subscription = event.subscription
        assert subscription.external_subscription_ref == "sub_test123"
        assert subscription.external_customer_ref == "cus_test123"
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.price_ref == settings.stripe_price_id_pro
        assert subscription.current_period_start == FIXED_NOW
        assert subscription.current_period_end == FIXED_NOW + timedelta(days=30)

    def test_subscription_event_legacy_period(self, provider):
        payload = stripe_event(
            "customer.subscription.created",
            stripe_subscription_object(seller_id=7, legacy_period=True),
        )

        event = provider.parse_event(payload, sign_payload(payload))

        assert event.kind == BillingEventKind.SUBSCRIPTION_CREATED
        assert event.subscription.current_period_end == FIXED_NOW + timedelta(days=30)

    @pytest.mark.parametrize(
        "stripe_status,expected",
        [
            ("unpaid", SubscriptionStatus.PAST_DUE),
            ("incomplete_expired", SubscriptionStatus.CANCELED),
            ("trialing", SubscriptionStatus.TRIALING),
        ],
    )
    def test_status_mapping(self, provider, stripe_status, expected):
        payload = stripe_event(
            "customer.subscription.updated",
            stripe_subscription_object(status=stripe_status),
        )

        event = provider.parse_event(payload, sign_payload(payload))

        assert event.subscription.status == expected

    def test_invoice_event(self, provider):
        payload = stripe_event("invoice.payment_failed", invoice_object())

        event = provider.parse_event(payload, sign_payload(payload))

        assert event.kind == BillingEventKind.INVOICE_PAYMENT_FAILED
        assert event.seller_id == 7
        assert event.invoice.external_subscription_ref == "sub_test123"
        assert event.invoice.amount_due == 1900
        assert event.subscription is None

    def test_invoice_event_legacy_layout(self, provider):
        payload = stripe_event(
            "invoice.payment_succeeded", invoice_object(legacy=True, amount_paid=1900)
        )

        event = provider.parse_event(payload, sign_payload(payload))

        assert event.kind == BillingEventKind.INVOICE_PAYMENT_SUCCEEDED
        assert event.seller_id == 7
        assert event.invoice.external_subscription_ref == "sub_test123"
        assert event.invoice.amount_paid == 1900

    def test_event_without_seller_metadata(self, provider):
        payload = stripe_event(
            "customer.subscription.updated", stripe_subscription_object(seller_id=None)
        )

        event = provider.parse_event(payload, sign_payload(payload))

        assert event.seller_id is None

    def test_non_numeric_seller_id(self, provider):
        payload = stripe_event("invoice.payment_failed", invoice_object(seller_id="abc"))

        event = provider.parse_event(payload, sign_payload(payload))

        assert event.seller_id is None

    def test_unhandled_event_type(self, provider):
        payload = stripe_event("charge.refunded", {"id": "ch_123"})

        assert provider.parse_event(payload, sign_payload(payload)) is None

    def test_invalid_signature(self, provider):
        payload = stripe_event(
            "customer.subscription.updated", stripe_subscription_object()
        )

        with pytest.raises(WebhookVerificationError):
            provider.parse_event(payload, sign_payload(payload, secret="whsec_wrong"))

    def test_tampered_payload(self, provider):
        payload = stripe_event(
            "customer.subscription.updated", stripe_subscription_object()
        )
        signature = sign_payload(payload)

        with pytest.raises(WebhookVerificationError):
            provider.parse_event(payload.replace(b"active", b"canceled"), signature)

    def test_missing_signature(self, provider):
        with pytest.raises(WebhookVerificationError):
            provider.parse_event(b"{}", "")

    def test_undecodable_subscription(self, provider):
        obj = stripe_subscription_object()
        del obj["customer"]
        payload = stripe_event("customer.subscription.updated", obj)

        with pytest.raises(WebhookVerificationError):
            provider.parse_event(payload, sign_payload(payload))

    def test_invalid_json(self, provider):
        payload = b"not json"

        with pytest.raises(WebhookVerificationError):
            provider.parse_event(payload, sign_payload(payload))


@pytest.mark.asyncio
class TestStripeCalls:
    async def test_create_customer(self, provider):
        with patch(
            "stripe.Customer.list", return_value={"data": []}
        ) as mock_list, patch(
            "stripe.Customer.create", return_value=MagicMock(id="cus_new")
        ) as mock_create:
            customer_ref = await provider.create_or_get_customer(
                seller_id=7, email="seller@example.com", name="Test Store"
            )

        assert customer_ref == "cus_new"
        mock_list.assert_called_once_with(
            api_key="sk_test_123", email="seller@example.com", limit=1
        )
        kwargs = mock_create.call_args.kwargs
        assert kwargs["metadata"] == {"seller_id": "7"}
        assert kwargs["idempotency_key"] == "customer-create-7"

    async def test_reuse_customer_and_tag_seller(self, provider):
        existing = {"data": [{"id": "cus_existing", "metadata": {}}]}
        with patch("stripe.Customer.list", return_value=existing), patch(
            "stripe.Customer.modify"
        ) as mock_modify, patch("stripe.Customer.create") as mock_create:
            customer_ref = await provider.create_or_get_customer(
                seller_id=7, email="seller@example.com", name="Test Store"
            )

        assert customer_ref == "cus_existing"
        mock_modify.assert_called_once_with(
            api_key="sk_test_123", id="cus_existing", metadata={"seller_id": "7"}
        )
        mock_create.assert_not_called()

    async def test_create_subscription_incomplete(self, provider):
        raw = stripe_subscription_object(
            status="incomplete",
            latest_invoice={
                "id": "in_test123",
                "payment_intent": {"id": "pi_123", "client_secret": "pi_123_secret"},
            },
        )
        with patch("stripe.Subscription.create", return_value=raw) as mock_create:
            subscription = await provider.create_subscription(
                customer_ref="cus_test123",
                price_ref=settings.stripe_price_id_pro,
                metadata={"seller_id": "7"},
                payment_method_ref="pm_card_visa",
                idempotency_key="subscription-7",
            )

        assert subscription.status == SubscriptionStatus.INCOMPLETE
        assert subscription.client_secret == "pi_123_secret"
        kwargs = mock_create.call_args.kwargs
        assert kwargs["payment_behavior"] == "default_incomplete"
        assert kwargs["default_payment_method"] == "pm_card_visa"
        assert kwargs["idempotency_key"] == "subscription-7"
        assert kwargs["items"] == [{"price": settings.stripe_price_id_pro}]

    async def test_update_subscription_price(self, provider):
        current = stripe_subscription_object()
        updated = stripe_subscription_object(
            price_id=settings.stripe_price_id_business
        )
        with patch("stripe.Subscription.retrieve", return_value=current), patch(
            "stripe.Subscription.modify", return_value=updated
        ) as mock_modify:
            subscription = await provider.update_subscription_price(
                "sub_test123", settings.stripe_price_id_business, prorate=False
            )

        assert subscription.price_ref == settings.stripe_price_id_business
        kwargs = mock_modify.call_args.kwargs
        assert kwargs["items"] == [
            {"id": "si_test123", "price": settings.stripe_price_id_business}
        ]
        assert kwargs["proration_behavior"] == "none"

    async def test_cancel_at_period_end(self, provider):
        raw = stripe_subscription_object(cancel_at_period_end=True)
        with patch("stripe.Subscription.modify", return_value=raw) as mock_modify, patch(
            "stripe.Subscription.cancel"
        ) as mock_cancel:
            subscription = await provider.cancel_subscription(
                "sub_test123", at_period_end=True
            )

        assert subscription.cancel_at_period_end is True
        assert mock_modify.call_args.kwargs["cancel_at_period_end"] is True
        mock_cancel.assert_not_called()

    async def test_cancel_immediately(self, provider):
        raw = stripe_subscription_object(status="canceled")
        with patch("stripe.Subscription.cancel", return_value=raw) as mock_cancel:
            subscription = await provider.cancel_subscription(
                "sub_test123", at_period_end=False
            )

        assert subscription.status == SubscriptionStatus.CANCELED
        mock_cancel.assert_called_once_with(
            api_key="sk_test_123", subscription_exposed_id="sub_test123"
        )

    async def test_stripe_error_becomes_provider_error(self, provider):
        with patch(
            "stripe.Subscription.retrieve",
            side_effect=stripe.CardError(
                "Your card was declined.", param=None, code="card_declined"
            ),
        ):
            with pytest.raises(PaymentProviderError) as exc_info:
                await provider.update_subscription_price(
                    "sub_test123", settings.stripe_price_id_business, prorate=True
                )

        assert exc_info.value.operation == "retrieve_subscription"
        assert "declined" in str(exc_info.value)

    async def test_call_timeout(self):
        provider = StripePaymentProvider(
            api_key="sk_test_123", webhook_secret=WEBHOOK_SECRET, timeout_seconds=0.01
        )

        def slow_call(**kwargs):
            time.sleep(0.2)

        with pytest.raises(PaymentProviderError) as exc_info:
            await provider._call("retrieve_subscription", slow_call)

        assert exc_info.value.operation == "retrieve_subscription"

    async def test_health_check(self, provider):
        with patch("stripe.Account.retrieve", return_value={"id": "acct_123"}):
            assert await provider.health_check() is True

        with patch(
            "stripe.Account.retrieve",
            side_effect=stripe.APIConnectionError("Network down"),
        ):
            assert await provider.health_check() is False
