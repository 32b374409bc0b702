"""
Provider-neutral models for payment provider responses and webhook events.

The payment provider adapter decodes its own wire format into these so the
services never touch provider SDK objects.
"""

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field

from marketplace.billing.models.domain.enums import (
    BillingEventKind,
    SubscriptionStatus,
    WebhookOutcome,
)


class ProviderSubscription(BaseModel):
    """State of a subscription as reported by the payment provider."""

    external_subscription_ref: str
    external_customer_ref: Optional[str] = None
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    price_ref: Optional[str] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None
    # Continuation token when the first payment needs customer action
    client_secret: Optional[str] = None


class ProviderInvoice(BaseModel):
    external_invoice_ref: str
    external_customer_ref: Optional[str] = None
    external_subscription_ref: Optional[str] = None
    amount_due: int = 0
    amount_paid: int = 0
    currency: Optional[str] = None


class ProviderEvent(BaseModel):
    """Typed webhook envelope.

    ``seller_id`` comes from the metadata we attach when creating the
    subscription; the reconciler drops events where it is missing.
    """

    external_event_id: str
    kind: BillingEventKind
    seller_id: Optional[int] = None
    created_at: Optional[datetime] = None
    subscription: Optional[ProviderSubscription] = None
    invoice: Optional[ProviderInvoice] = None
    payload: dict[str, Any] = Field(default_factory=dict)

    def audit_payload(self) -> dict[str, Any]:
        """Compact, JSON-safe summary stored on the BillingEvent."""
        summary: dict[str, Any] = {"kind": self.kind.value}
        if self.subscription:
            summary["subscription"] = self.subscription.model_dump(
                mode="json", exclude={"client_secret"}
            )
        if self.invoice:
            summary["invoice"] = self.invoice.model_dump(mode="json")
        return summary


class WebhookResult(BaseModel):
    """What the reconciler did with one delivery."""

    outcome: WebhookOutcome
    external_event_id: Optional[str] = None
    kind: Optional[BillingEventKind] = None
    seller_id: Optional[int] = None
