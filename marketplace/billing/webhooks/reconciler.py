"""
Payment provider webhook reconciliation.

Applies provider events to local subscription state:
- Subscription created/updated/deleted
- Trial ending
- Payment success/failure

Events may arrive more than once and in any order. Each event id is
recorded in the billing event log in the same transaction as its effects,
so a redelivery is a no-op.
"""

from typing import Awaitable, Callable, Optional

from common.core.otel_axiom_exporter import trace_span, get_logger
from common.core.time_utils import Clock, month_bounds, utcnow
from common.db.scoped import transaction
from marketplace.billing.models.domain.billing_event import BillingEventCreateModel
from marketplace.billing.models.domain.enums import (
    BillingEventKind,
    NotificationKind,
    PlanId,
    SubscriptionStatus,
    WebhookOutcome,
)
from marketplace.billing.models.domain.provider_events import (
    ProviderEvent,
    WebhookResult,
)
from marketplace.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from marketplace.billing.providers.notifications.factory import get_notification_sink
from marketplace.billing.providers.notifications.interface import (
    NotificationSinkInterface,
)
from marketplace.billing.providers.payment.factory import get_payment_provider
from marketplace.billing.providers.payment.interface import PaymentProviderInterface
from marketplace.billing.repositories.billing_event_repository import (
    BillingEventRepository,
)
from marketplace.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)
from marketplace.billing.services.grace_period_service import GracePeriodService
from marketplace.billing.services.plan_catalog import PlanCatalog, get_plan_catalog
from marketplace.sellers.repositories.seller_repository import SellerRepository

logger = get_logger(__name__)

# (kind, payload) pairs sent once the transaction has committed
Notification = tuple[NotificationKind, dict]
# None means the event was skipped as stale
Handler = Callable[
    [Subscription, ProviderEvent], Awaitable[Optional[list[Notification]]]
]


class _AlreadyRecorded(Exception):
    """A concurrent delivery of the same event committed first."""


class WebhookReconciler:
    """Applies verified provider events to local billing state."""

    def __init__(
        self,
        payment_provider: Optional[PaymentProviderInterface] = None,
        grace_periods: Optional[GracePeriodService] = None,
        notifier: Optional[NotificationSinkInterface] = None,
        catalog: Optional[PlanCatalog] = None,
        clock: Clock = utcnow,
    ):
        self.subscription_repo = SubscriptionRepository()
        self.billing_event_repo = BillingEventRepository()
        self.seller_repo = SellerRepository()
        self.payment = payment_provider or get_payment_provider()
        self.notifier = notifier or get_notification_sink()
        self.grace_periods = grace_periods or GracePeriodService(
            payment_provider=self.payment, notifier=self.notifier, clock=clock
        )
        self.catalog = catalog or get_plan_catalog()
        self.clock = clock

        self._handlers: dict[BillingEventKind, Handler] = {
            BillingEventKind.SUBSCRIPTION_CREATED: self._on_subscription_changed,
            BillingEventKind.SUBSCRIPTION_UPDATED: self._on_subscription_changed,
            BillingEventKind.SUBSCRIPTION_DELETED: self._on_subscription_deleted,
            BillingEventKind.SUBSCRIPTION_TRIAL_WILL_END: self._on_trial_will_end,
            BillingEventKind.INVOICE_PAYMENT_SUCCEEDED: self._on_payment_succeeded,
            BillingEventKind.INVOICE_PAYMENT_FAILED: self._on_payment_failed,
        }
        missing = set(BillingEventKind) - set(self._handlers)
        if missing:
            raise RuntimeError(
                f"No webhook handler for: {sorted(kind.value for kind in missing)}"
            )

    @trace_span
    async def handle(self, payload: bytes, signature: str) -> WebhookResult:
        """
        Verify, decode and apply one webhook delivery.

        Raises:
            WebhookVerificationError: bad signature or undecodable payload
        """
        event = self.payment.parse_event(payload, signature)
        if event is None:
            return WebhookResult(outcome=WebhookOutcome.IGNORED)
        return await self.reconcile(event)

    @trace_span
    async def reconcile(self, event: ProviderEvent) -> WebhookResult:
        """Apply a decoded event exactly once."""
        result = WebhookResult(
            outcome=WebhookOutcome.PROCESSED,
            external_event_id=event.external_event_id,
            kind=event.kind,
            seller_id=event.seller_id,
        )
        log_extra = {
            "event_id": event.external_event_id,
            "event_type": event.kind.value,
            "seller_id": event.seller_id,
        }
        logger.info(f"Received billing webhook: {event.kind.value}", extra=log_extra)

        if event.seller_id is None:
            logger.warning(
                f"Dropping {event.kind.value} event {event.external_event_id}: no seller_id in metadata",
                extra=log_extra,
            )
            result.outcome = WebhookOutcome.REJECTED_NO_SELLER
            return result

        if await self.billing_event_repo.exists_external_event(event.external_event_id):
            logger.info(
                f"Duplicate webhook {event.external_event_id}, skipping",
                extra=log_extra,
            )
            result.outcome = WebhookOutcome.DUPLICATE
            return result

        try:
            async with transaction():
                subscription = await self._lock_subscription(event.seller_id)
                if subscription is None:
                    logger.warning(
                        f"Dropping {event.kind.value} event {event.external_event_id}: unknown seller",
                        extra=log_extra,
                    )
                    result.outcome = WebhookOutcome.REJECTED_NO_SELLER
                    return result

                notifications = await self._handlers[event.kind](subscription, event)
                if notifications is None:
                    result.outcome = WebhookOutcome.IGNORED_STALE
                    notifications = []

                recorded = await self.billing_event_repo.append_once(
                    BillingEventCreateModel(
                        seller_id=event.seller_id,
                        subscription_id=subscription.id,
                        event_type=event.kind.value,
                        external_event_id=event.external_event_id,
                        payload={
                            **event.audit_payload(),
                            "outcome": result.outcome.value,
                        },
                        processed_at=self.clock(),
                    )
                )
                if recorded is None:
                    # Undo this delivery's effects
                    raise _AlreadyRecorded()
        except _AlreadyRecorded:
            logger.info(
                f"Duplicate webhook {event.external_event_id}, skipping",
                extra=log_extra,
            )
            result.outcome = WebhookOutcome.DUPLICATE
            return result

        for kind, payload in notifications:
            await self.notifier.send(event.seller_id, kind, payload)

        logger.info(
            f"Reconciled billing webhook {event.external_event_id}: {result.outcome.value}",
            extra=log_extra,
        )
        return result

    async def _lock_subscription(self, seller_id: int) -> Optional[Subscription]:
        subscription = await self.subscription_repo.get_by_seller_id_for_update(
            seller_id
        )
        if subscription:
            return subscription

        # Seller predates billing; give them the default row first
        if not await self.seller_repo.get(seller_id):
            return None
        period_start, period_end = month_bounds(self.clock())
        await self.subscription_repo.create_if_absent(
            SubscriptionCreateModel(
                seller_id=seller_id,
                plan_id=PlanId.FREE,
                status=SubscriptionStatus.ACTIVE,
                current_period_start=period_start,
                current_period_end=period_end,
            )
        )
        return await self.subscription_repo.get_by_seller_id_for_update(seller_id)

    def _is_stale(self, subscription: Subscription, ref: Optional[str]) -> bool:
        """
        True when ``ref`` names a different provider subscription than the
        seller's live one, e.g. a late event for a replaced subscription.
        """
        return bool(
            ref
            and subscription.is_live()
            and subscription.external_subscription_ref
            and subscription.external_subscription_ref != ref
        )

    async def _on_subscription_changed(
        self, subscription: Subscription, event: ProviderEvent
    ) -> Optional[list[Notification]]:
        provider_sub = event.subscription
        if self._is_stale(subscription, provider_sub.external_subscription_ref):
            logger.info(
                f"Ignoring {event.kind.value} for replaced subscription {provider_sub.external_subscription_ref}",
                extra={"seller_id": subscription.seller_id},
            )
            return None
        if (
            subscription.status == SubscriptionStatus.CANCELED
            and subscription.external_subscription_ref
            == provider_sub.external_subscription_ref
            and provider_sub.status != SubscriptionStatus.CANCELED
        ):
            # Canceled is terminal for a provider subscription
            logger.info(
                f"Ignoring {provider_sub.status.value} report for canceled subscription",
                extra={"seller_id": subscription.seller_id},
            )
            return None
        plan_id = self.catalog.plan_for_price(provider_sub.price_ref)
        if plan_id is None:
            logger.warning(
                f"Unknown price {provider_sub.price_ref}, keeping plan {subscription.plan_id.value}",
                extra={
                    "seller_id": subscription.seller_id,
                    "price_id": provider_sub.price_ref,
                },
            )
            plan_id = subscription.plan_id

        status = subscription.reconcile_status(provider_sub.status)
        fields = {
            "plan_id": plan_id,
            "status": status,
            "current_period_start": provider_sub.current_period_start,
            "current_period_end": provider_sub.current_period_end,
            "cancel_at_period_end": provider_sub.cancel_at_period_end,
            "external_subscription_ref": provider_sub.external_subscription_ref,
            "external_price_ref": provider_sub.price_ref,
        }
        if provider_sub.external_customer_ref:
            fields["external_customer_ref"] = provider_sub.external_customer_ref
        if status == SubscriptionStatus.CANCELED:
            now = self.clock()
            fields.update(
                plan_id=PlanId.FREE,
                canceled_at=provider_sub.canceled_at or now,
                ended_at=now,
                grace_period_start=None,
                grace_period_end=None,
            )
        elif subscription.status == SubscriptionStatus.CANCELED:
            # New provider subscription starts a new lifecycle on the row
            fields.update(canceled_at=None, ended_at=None)

        await self.subscription_repo.update(
            subscription.id, SubscriptionUpdateModel(**fields)
        )

        if status != provider_sub.status:
            logger.info(
                f"Keeping seller {subscription.seller_id} past_due while grace period is active",
                extra={
                    "seller_id": subscription.seller_id,
                    "reported_status": provider_sub.status.value,
                },
            )
        return []

    async def _on_subscription_deleted(
        self, subscription: Subscription, event: ProviderEvent
    ) -> Optional[list[Notification]]:
        if self._is_stale(subscription, event.subscription.external_subscription_ref):
            logger.info(
                f"Ignoring deletion of replaced subscription {event.subscription.external_subscription_ref}",
                extra={"seller_id": subscription.seller_id},
            )
            return None
        now = self.clock()
        await self.subscription_repo.update(
            subscription.id,
            SubscriptionUpdateModel(
                plan_id=PlanId.FREE,
                status=SubscriptionStatus.CANCELED,
                cancel_at_period_end=False,
                canceled_at=event.subscription.canceled_at or now,
                ended_at=now,
                grace_period_start=None,
                grace_period_end=None,
            ),
        )
        logger.info(
            f"Subscription for seller {subscription.seller_id} deleted by provider, downgraded to free",
            extra={"seller_id": subscription.seller_id},
        )
        return []

    async def _on_trial_will_end(
        self, subscription: Subscription, event: ProviderEvent
    ) -> list[Notification]:
        return [
            (
                NotificationKind.TRIAL_WILL_END,
                {
                    "plan_id": subscription.plan_id.value,
                    "trial_end": event.subscription.current_period_end.isoformat(),
                },
            )
        ]

    def _is_stale_invoice(
        self, subscription: Subscription, event: ProviderEvent
    ) -> bool:
        ref = event.invoice.external_subscription_ref if event.invoice else None
        if not self._is_stale(subscription, ref):
            return False
        logger.info(
            f"Ignoring {event.kind.value} for invoice of replaced subscription {ref}",
            extra={
                "seller_id": subscription.seller_id,
                "invoice_id": event.invoice.external_invoice_ref,
            },
        )
        return True

    async def _on_payment_succeeded(
        self, subscription: Subscription, event: ProviderEvent
    ) -> Optional[list[Notification]]:
        if not subscription.is_live():
            logger.info(
                f"Payment succeeded for canceled subscription of seller {subscription.seller_id}",
                extra={"seller_id": subscription.seller_id},
            )
            return None
        if self._is_stale_invoice(subscription, event):
            return None

        await self.subscription_repo.update(
            subscription.id,
            SubscriptionUpdateModel(
                status=SubscriptionStatus.ACTIVE,
                grace_period_start=None,
                grace_period_end=None,
                last_payment_failed=False,
            ),
        )
        if subscription.grace_period_active():
            logger.info(
                f"Payment recovered for seller {subscription.seller_id}, grace period cleared",
                extra={"seller_id": subscription.seller_id},
            )
        return []

    async def _on_payment_failed(
        self, subscription: Subscription, event: ProviderEvent
    ) -> Optional[list[Notification]]:
        if self._is_stale_invoice(subscription, event):
            return None

        # Joins this transaction
        _, started = await self.grace_periods.start_in_transaction(
            subscription.seller_id
        )
        if started is None:
            return []
        return [(NotificationKind.GRACE_PERIOD_STARTED, started)]
