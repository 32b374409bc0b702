"""
Interface for payment providers.

Abstracts payment processing away from specific platforms (Stripe, PayPal, etc.)
Implementations return provider-neutral models and raise PaymentProviderError
for every failure, including timeouts.
"""

from abc import ABC, abstractmethod
from typing import Optional

from marketplace.billing.models.domain.provider_events import (
    ProviderEvent,
    ProviderSubscription,
)


class PaymentProviderInterface(ABC):
    """Abstract interface for payment providers."""

    @abstractmethod
    async def create_or_get_customer(
        self, seller_id: int, email: str, name: str
    ) -> str:
        """
        Find the customer for ``email`` or create one.

        Idempotent: repeated calls for the same seller return the same
        customer.

        Args:
            seller_id: Internal seller ID (stored in customer metadata)
            email: Seller email, the lookup key
            name: Seller or store name

        Returns:
            customer_ref: Payment provider customer ID
        """
        pass

    @abstractmethod
    async def create_subscription(
        self,
        customer_ref: str,
        price_ref: str,
        metadata: dict[str, str],
        payment_method_ref: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> ProviderSubscription:
        """
        Create a subscription for a customer.

        Args:
            customer_ref: Payment provider customer ID
            price_ref: Price to subscribe to
            metadata: Attached to the subscription; must include seller_id so
                webhook events can be routed back
            payment_method_ref: Optional default payment method
            idempotency_key: Makes retries of a failed attempt safe

        Returns:
            ProviderSubscription, with client_secret set when the first
            payment needs customer confirmation
        """
        pass

    @abstractmethod
    async def update_subscription_price(
        self, subscription_ref: str, price_ref: str, prorate: bool
    ) -> ProviderSubscription:
        """
        Move an existing subscription to a new price.

        Args:
            subscription_ref: Payment provider subscription ID
            price_ref: New price
            prorate: Charge/credit the partial period now (immediate changes)
        """
        pass

    @abstractmethod
    async def cancel_subscription(
        self, subscription_ref: str, at_period_end: bool
    ) -> ProviderSubscription:
        """
        Cancel a subscription now or at the end of the current period.

        Args:
            subscription_ref: Payment provider subscription ID
            at_period_end: Keep service until the paid period ends
        """
        pass

    @abstractmethod
    def parse_event(self, payload: bytes, signature: str) -> Optional[ProviderEvent]:
        """
        Verify a webhook signature and decode the event.

        Returns:
            The typed event, or None for event types we do not handle

        Raises:
            WebhookVerificationError: Signature or payload is invalid
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the payment backend is available and healthy.

        Returns:
            True if healthy, False otherwise
        """
        pass
