"""
Stripe implementation of payment provider.
"""

import asyncio
import json
from typing import Any, Callable, Optional

import stripe
from pydantic import ValidationError

from common.core.config import settings
from common.core.exceptions import PaymentProviderError, WebhookVerificationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.core.time_utils import from_timestamp
from marketplace.billing.models.domain.enums import (
    BillingEventKind,
    SubscriptionStatus,
)
from marketplace.billing.models.domain.provider_events import (
    ProviderEvent,
    ProviderInvoice,
    ProviderSubscription,
)
from marketplace.billing.providers.payment.interface import PaymentProviderInterface
from marketplace.billing.providers.payment.stripe_models import (
    StripeInvoiceData,
    StripeSubscriptionData,
    StripeSubscriptionStatus,
    StripeWebhookPayload,
    StripeWebhookType,
)

logger = get_logger(__name__)

_SUBSCRIPTION_EVENTS = {
    StripeWebhookType.SUBSCRIPTION_CREATED: BillingEventKind.SUBSCRIPTION_CREATED,
    StripeWebhookType.SUBSCRIPTION_UPDATED: BillingEventKind.SUBSCRIPTION_UPDATED,
    StripeWebhookType.SUBSCRIPTION_DELETED: BillingEventKind.SUBSCRIPTION_DELETED,
    StripeWebhookType.SUBSCRIPTION_TRIAL_WILL_END: BillingEventKind.SUBSCRIPTION_TRIAL_WILL_END,
}

_INVOICE_EVENTS = {
    StripeWebhookType.INVOICE_PAYMENT_SUCCEEDED: BillingEventKind.INVOICE_PAYMENT_SUCCEEDED,
    StripeWebhookType.INVOICE_PAYMENT_FAILED: BillingEventKind.INVOICE_PAYMENT_FAILED,
}


class StripePaymentProvider(PaymentProviderInterface):
    """Stripe-based payment implementation.

    The Stripe SDK is synchronous; each call runs in a worker thread and is
    bounded by ``payment_provider_timeout_seconds``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self._api_key = api_key or settings.stripe_secret_key
        self._webhook_secret = webhook_secret or settings.stripe_webhook_secret
        self._timeout = timeout_seconds or settings.payment_provider_timeout_seconds

    async def _call(self, operation: str, fn: Callable[..., Any], **kwargs) -> Any:
        """Run a Stripe SDK call off the event loop with a hard timeout."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, api_key=self._api_key, **kwargs),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Stripe {operation} timed out after {self._timeout}s",
                extra={"operation": operation},
            )
            raise PaymentProviderError(
                "The payment provider did not respond in time. Please try again.",
                operation=operation,
            )
        except stripe.StripeError as e:
            logger.error(
                f"Stripe {operation} failed: {str(e)}",
                extra={"operation": operation, "error": str(e)},
            )
            message = getattr(e, "user_message", None) or str(e)
            raise PaymentProviderError(message, operation=operation) from e

    @staticmethod
    def _to_dict(obj: Any) -> dict[str, Any]:
        if isinstance(obj, dict) and not hasattr(obj, "to_dict"):
            return obj
        return obj.to_dict()

    def _to_provider_subscription(self, raw: Any) -> ProviderSubscription:
        data = StripeSubscriptionData.model_validate(self._to_dict(raw))
        return self._map_subscription(data)

    @staticmethod
    def _map_subscription(data: StripeSubscriptionData) -> ProviderSubscription:
        period_start, period_end = data.period
        if period_start is None or period_end is None:
            raise PaymentProviderError(
                f"Stripe subscription {data.id} has no billing period",
                operation="decode_subscription",
            )
        return ProviderSubscription(
            external_subscription_ref=data.id,
            external_customer_ref=data.customer,
            status=_map_stripe_status(data.status),
            current_period_start=from_timestamp(period_start),
            current_period_end=from_timestamp(period_end),
            price_ref=data.price_id,
            cancel_at_period_end=data.cancel_at_period_end,
            canceled_at=from_timestamp(data.canceled_at) if data.canceled_at else None,
            client_secret=data.client_secret,
        )

    @trace_span
    async def create_or_get_customer(
        self, seller_id: int, email: str, name: str
    ) -> str:
        """Look the customer up by email, creating it on first use."""
        existing = await self._call(
            "list_customers", stripe.Customer.list, email=email, limit=1
        )
        customers = self._to_dict(existing).get("data", [])
        if customers:
            customer = customers[0]
            metadata = customer.get("metadata") or {}
            if metadata.get("seller_id") != str(seller_id):
                await self._call(
                    "update_customer",
                    stripe.Customer.modify,
                    id=customer["id"],
                    metadata={"seller_id": str(seller_id)},
                )
            logger.info(
                "Reusing existing Stripe customer",
                extra={"seller_id": seller_id, "customer_id": customer["id"]},
            )
            return customer["id"]

        customer = await self._call(
            "create_customer",
            stripe.Customer.create,
            email=email,
            name=name,
            metadata={"seller_id": str(seller_id)},
            idempotency_key=f"customer-create-{seller_id}",
        )
        logger.info(
            "Created Stripe customer",
            extra={"seller_id": seller_id, "customer_id": customer.id},
        )
        return customer.id

    @trace_span
    async def create_subscription(
        self,
        customer_ref: str,
        price_ref: str,
        metadata: dict[str, str],
        payment_method_ref: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> ProviderSubscription:
        """
        Create a Stripe subscription.

        Uses ``default_incomplete`` so a payment requiring authentication
        leaves the subscription incomplete and returns the client secret
        instead of failing.
        """
        params: dict[str, Any] = {
            "customer": customer_ref,
            "items": [{"price": price_ref}],
            "payment_behavior": "default_incomplete",
            "payment_settings": {"save_default_payment_method": "on_subscription"},
            "expand": ["latest_invoice.payment_intent"],
            "metadata": metadata,
        }
        if payment_method_ref:
            params["default_payment_method"] = payment_method_ref
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        raw = await self._call("create_subscription", stripe.Subscription.create, **params)
        subscription = self._to_provider_subscription(raw)

        logger.info(
            "Created Stripe subscription",
            extra={
                "customer_id": customer_ref,
                "subscription_id": subscription.external_subscription_ref,
                "status": subscription.status.value,
                "seller_id": metadata.get("seller_id"),
            },
        )
        return subscription

    @trace_span
    async def update_subscription_price(
        self, subscription_ref: str, price_ref: str, prorate: bool
    ) -> ProviderSubscription:
        """
        Update existing Stripe subscription to a new price.

        Used for paid -> paid upgrades/downgrades instead of creating a new
        subscription.
        """
        current = await self._call(
            "retrieve_subscription", stripe.Subscription.retrieve, id=subscription_ref
        )
        data = StripeSubscriptionData.model_validate(self._to_dict(current))
        item = data.first_item
        if item is None:
            raise PaymentProviderError(
                f"Stripe subscription {subscription_ref} has no items",
                operation="update_subscription_price",
            )

        raw = await self._call(
            "update_subscription_price",
            stripe.Subscription.modify,
            id=subscription_ref,
            items=[{"id": item.id, "price": price_ref}],
            proration_behavior="create_prorations" if prorate else "none",
            cancel_at_period_end=False,
        )
        subscription = self._to_provider_subscription(raw)

        logger.info(
            "Updated Stripe subscription price",
            extra={
                "subscription_id": subscription_ref,
                "price_id": price_ref,
                "prorate": prorate,
            },
        )
        return subscription

    @trace_span
    async def cancel_subscription(
        self, subscription_ref: str, at_period_end: bool
    ) -> ProviderSubscription:
        """Cancel Stripe subscription now or at period end."""
        if at_period_end:
            raw = await self._call(
                "cancel_subscription",
                stripe.Subscription.modify,
                id=subscription_ref,
                cancel_at_period_end=True,
            )
        else:
            raw = await self._call(
                "cancel_subscription", stripe.Subscription.cancel, subscription_exposed_id=subscription_ref
            )
        subscription = self._to_provider_subscription(raw)

        logger.info(
            "Cancelled Stripe subscription",
            extra={
                "subscription_id": subscription_ref,
                "at_period_end": at_period_end,
            },
        )
        return subscription

    def parse_event(self, payload: bytes, signature: str) -> Optional[ProviderEvent]:
        """Verify the Stripe-Signature header and decode the event."""
        if not signature:
            raise WebhookVerificationError("Missing stripe-signature header")

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), signature, self._webhook_secret
            )
        except stripe.SignatureVerificationError as e:
            logger.error(f"Stripe webhook signature verification failed: {str(e)}")
            raise WebhookVerificationError("Invalid signature") from e

        try:
            envelope = StripeWebhookPayload.model_validate(json.loads(payload))
        except (ValueError, ValidationError) as e:
            logger.error("Invalid Stripe webhook payload", extra={"error": str(e)})
            raise WebhookVerificationError("Invalid webhook payload") from e

        return self.decode_event(envelope)

    def decode_event(self, envelope: StripeWebhookPayload) -> Optional[ProviderEvent]:
        """Map a verified Stripe event onto a ProviderEvent."""
        try:
            event_type = StripeWebhookType(envelope.type)
        except ValueError:
            logger.info(f"Ignoring unhandled Stripe webhook type: {envelope.type}")
            return None

        created_at = from_timestamp(envelope.created) if envelope.created else None
        try:
            if event_type in _SUBSCRIPTION_EVENTS:
                data = StripeSubscriptionData.model_validate(envelope.data.object)
                return ProviderEvent(
                    external_event_id=envelope.id,
                    kind=_SUBSCRIPTION_EVENTS[event_type],
                    seller_id=_parse_seller_id(data.metadata.seller_id),
                    created_at=created_at,
                    subscription=self._map_subscription(data),
                )

            data = StripeInvoiceData.model_validate(envelope.data.object)
            return ProviderEvent(
                external_event_id=envelope.id,
                kind=_INVOICE_EVENTS[event_type],
                seller_id=_parse_seller_id(data.seller_id),
                created_at=created_at,
                invoice=ProviderInvoice(
                    external_invoice_ref=data.id,
                    external_customer_ref=data.customer,
                    external_subscription_ref=data.subscription_id,
                    amount_due=data.amount_due,
                    amount_paid=data.amount_paid,
                    currency=data.currency,
                ),
            )
        except (ValidationError, PaymentProviderError) as e:
            logger.error(
                f"Could not decode Stripe {envelope.type} event {envelope.id}",
                extra={"event_id": envelope.id, "error": str(e)},
            )
            raise WebhookVerificationError("Invalid webhook payload") from e

    @trace_span
    async def health_check(self) -> bool:
        """Check Stripe health."""
        try:
            # Try to retrieve account to verify API key works
            await self._call("health_check", stripe.Account.retrieve)
            return True
        except PaymentProviderError as e:
            logger.error(f"Payment health check failed: {e}")
            return False


def _parse_seller_id(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Non-numeric seller_id in Stripe metadata: {value!r}")
        return None


def _map_stripe_status(stripe_status: StripeSubscriptionStatus) -> SubscriptionStatus:
    """Map Stripe subscription status to our subscription status."""
    mapping = {
        StripeSubscriptionStatus.ACTIVE: SubscriptionStatus.ACTIVE,
        StripeSubscriptionStatus.TRIALING: SubscriptionStatus.TRIALING,
        StripeSubscriptionStatus.PAST_DUE: SubscriptionStatus.PAST_DUE,
        StripeSubscriptionStatus.CANCELED: SubscriptionStatus.CANCELED,
        StripeSubscriptionStatus.UNPAID: SubscriptionStatus.PAST_DUE,
        StripeSubscriptionStatus.INCOMPLETE: SubscriptionStatus.INCOMPLETE,
        StripeSubscriptionStatus.INCOMPLETE_EXPIRED: SubscriptionStatus.CANCELED,
        StripeSubscriptionStatus.PAUSED: SubscriptionStatus.PAST_DUE,
    }
    return mapping.get(stripe_status, SubscriptionStatus.INCOMPLETE)
