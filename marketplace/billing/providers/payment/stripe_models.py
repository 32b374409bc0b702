"""
Pydantic models for the parts of Stripe objects we read.

Covers both the pre-2025 layout (period and subscription id at the top level)
and the newer one (period on subscription items, invoice subscription under
``parent.subscription_details``).
"""

from typing import Optional, Any
from enum import Enum
from pydantic import BaseModel, Field


class StripeWebhookType(str, Enum):
    """Stripe webhook event types we care about."""

    # Subscription
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    SUBSCRIPTION_TRIAL_WILL_END = "customer.subscription.trial_will_end"

    # Payment
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


class StripeSubscriptionStatus(str, Enum):
    """Stripe subscription status values."""

    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    PAUSED = "paused"


class StripeMetadata(BaseModel):
    """Stripe metadata (we store seller_id here)."""

    seller_id: Optional[str] = None
    plan_id: Optional[str] = None


class StripePrice(BaseModel):
    id: str


class StripeSubscriptionItem(BaseModel):
    id: str
    price: StripePrice
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None


class StripeList(BaseModel):
    data: list[StripeSubscriptionItem] = Field(default_factory=list)


class StripePaymentIntent(BaseModel):
    id: Optional[str] = None
    client_secret: Optional[str] = None


class StripeConfirmationSecret(BaseModel):
    client_secret: Optional[str] = None


class StripeLatestInvoice(BaseModel):
    id: Optional[str] = None
    payment_intent: Optional[StripePaymentIntent | str] = None
    confirmation_secret: Optional[StripeConfirmationSecret] = None


class StripeSubscriptionData(BaseModel):
    """Stripe subscription object."""

    id: str
    customer: str
    status: StripeSubscriptionStatus
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[int] = None
    ended_at: Optional[int] = None
    trial_end: Optional[int] = None
    items: StripeList = Field(default_factory=StripeList)
    latest_invoice: Optional[StripeLatestInvoice | str] = None
    metadata: StripeMetadata = Field(default_factory=StripeMetadata)

    @property
    def first_item(self) -> Optional[StripeSubscriptionItem]:
        return self.items.data[0] if self.items.data else None

    @property
    def price_id(self) -> Optional[str]:
        item = self.first_item
        return item.price.id if item else None

    @property
    def period(self) -> tuple[Optional[int], Optional[int]]:
        if self.current_period_start and self.current_period_end:
            return self.current_period_start, self.current_period_end
        item = self.first_item
        if item:
            return item.current_period_start, item.current_period_end
        return None, None

    @property
    def client_secret(self) -> Optional[str]:
        invoice = self.latest_invoice
        if not isinstance(invoice, StripeLatestInvoice):
            return None
        if isinstance(invoice.payment_intent, StripePaymentIntent):
            return invoice.payment_intent.client_secret
        if invoice.confirmation_secret:
            return invoice.confirmation_secret.client_secret
        return None


class StripeSubscriptionDetails(BaseModel):
    subscription: Optional[str] = None
    metadata: StripeMetadata = Field(default_factory=StripeMetadata)


class StripeInvoiceParent(BaseModel):
    subscription_details: Optional[StripeSubscriptionDetails] = None


class StripeInvoiceData(BaseModel):
    """Stripe invoice object."""

    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    status: Optional[str] = None
    amount_due: int = 0
    amount_paid: int = 0
    currency: Optional[str] = None
    metadata: StripeMetadata = Field(default_factory=StripeMetadata)
    subscription_details: Optional[StripeSubscriptionDetails] = None
    parent: Optional[StripeInvoiceParent] = None

    @property
    def _details(self) -> Optional[StripeSubscriptionDetails]:
        if self.parent and self.parent.subscription_details:
            return self.parent.subscription_details
        return self.subscription_details

    @property
    def subscription_id(self) -> Optional[str]:
        if self.subscription:
            return self.subscription
        details = self._details
        return details.subscription if details else None

    @property
    def seller_id(self) -> Optional[str]:
        if self.metadata.seller_id:
            return self.metadata.seller_id
        details = self._details
        return details.metadata.seller_id if details else None


class StripeEventData(BaseModel):
    object: dict[str, Any]


class StripeWebhookPayload(BaseModel):
    """Stripe event envelope."""

    id: str
    type: str
    created: Optional[int] = None
    livemode: bool = False
    data: StripeEventData
