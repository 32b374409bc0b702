"""
Grace periods after failed payments.

A failed payment keeps paid service running for ``grace_period_days``.
If no payment succeeds before the window ends, the sweep cancels the
subscription and the seller drops to the free plan.
"""

from datetime import datetime, timedelta
from typing import Optional

from common.core.config import settings
from common.core.exceptions import NotFoundError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.core.time_utils import Clock, utcnow
from common.db.scoped import transaction
from marketplace.billing.models.domain.billing_event import BillingEventCreateModel
from marketplace.billing.models.domain.enums import (
    BillingEventType,
    NotificationKind,
    PlanId,
    SubscriptionStatus,
)
from marketplace.billing.models.domain.subscription import (
    Subscription,
    SubscriptionUpdateModel,
)
from marketplace.billing.models.domain.sweep import GraceExpiryResult
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

logger = get_logger(__name__)


class GracePeriodService:
    def __init__(
        self,
        payment_provider: Optional[PaymentProviderInterface] = None,
        notifier: Optional[NotificationSinkInterface] = None,
        clock: Clock = utcnow,
    ):
        self.subscription_repo = SubscriptionRepository()
        self.billing_event_repo = BillingEventRepository()
        self.payment = payment_provider or get_payment_provider()
        self.notifier = notifier or get_notification_sink()
        self.clock = clock

    @trace_span
    async def start(self, seller_id: int, days: Optional[int] = None) -> Subscription:
        """
        Start a grace period for a seller whose payment failed.

        No-op when a grace period is already running, so redelivered or
        repeated payment failures never extend the window.
        """
        async with transaction():
            subscription, started = await self.start_in_transaction(seller_id, days)

        if started is not None:
            await self.notifier.send(
                seller_id, NotificationKind.GRACE_PERIOD_STARTED, started
            )
        return subscription

    async def start_in_transaction(
        self, seller_id: int, days: Optional[int] = None
    ) -> tuple[Subscription, Optional[dict]]:
        """
        Same as start(), without notifying.

        Returns the ``grace_period_started`` payload for the caller to send
        once its transaction has committed, or None when nothing started.
        """
        days = days if days is not None else settings.grace_period_days
        now = self.clock()

        async with transaction():
            subscription = await self._lock(seller_id)
            if subscription.grace_period_active():
                logger.info(
                    f"Grace period already active for seller {seller_id}",
                    extra={
                        "seller_id": seller_id,
                        "grace_period_end": subscription.grace_period_end.isoformat(),
                    },
                )
                return subscription, None
            if not subscription.is_live():
                logger.warning(
                    f"Not starting grace period for canceled subscription of seller {seller_id}",
                    extra={"seller_id": seller_id},
                )
                return subscription, None
            if subscription.status == SubscriptionStatus.INCOMPLETE:
                # First payment never succeeded; there is no paid service to extend
                logger.info(
                    f"Not starting grace period for incomplete subscription of seller {seller_id}",
                    extra={"seller_id": seller_id},
                )
                return subscription, None

            grace_end = now + timedelta(days=days)
            subscription = await self.subscription_repo.update(
                subscription.id,
                SubscriptionUpdateModel(
                    status=SubscriptionStatus.PAST_DUE,
                    grace_period_start=now,
                    grace_period_end=grace_end,
                    last_payment_failed=True,
                ),
            )
            await self._record_event(
                subscription,
                BillingEventType.GRACE_PERIOD_STARTED,
                {"grace_period_end": grace_end.isoformat(), "days": days},
            )

        logger.info(
            f"Started {days}-day grace period for seller {seller_id}",
            extra={"seller_id": seller_id, "grace_period_end": grace_end.isoformat()},
        )
        return subscription, {
            "plan_id": subscription.plan_id.value,
            "grace_period_end": grace_end.isoformat(),
            "days": days,
        }

    @trace_span
    async def end(self, seller_id: int) -> Subscription:
        """
        End a seller's grace period by cancelling the subscription.

        The Stripe subscription is cancelled immediately and the seller
        falls back to the free plan.
        """
        return await self._end(seller_id, expired_at=None)

    @trace_span
    async def expire_due(self, now: Optional[datetime] = None) -> GraceExpiryResult:
        """End every grace period whose end has passed. One failure does not stop the rest."""
        now = now or self.clock()
        result = GraceExpiryResult()

        for candidate in await self.subscription_repo.get_expired_grace_periods(now):
            try:
                ended = await self._end(candidate.seller_id, expired_at=now)
            except Exception as e:
                logger.error(
                    f"Failed to end grace period for seller {candidate.seller_id}: {e}",
                    extra={"seller_id": candidate.seller_id},
                    exc_info=True,
                )
                result.errors[candidate.seller_id] = str(e)
                continue
            if ended is not None:
                result.expired_seller_ids.append(candidate.seller_id)

        if result.expired_seller_ids or result.errors:
            logger.info(
                f"Expired {len(result.expired_seller_ids)} grace periods",
                extra={
                    "expired": len(result.expired_seller_ids),
                    "errors": len(result.errors),
                },
            )
        return result

    async def _end(
        self, seller_id: int, expired_at: Optional[datetime]
    ) -> Optional[Subscription]:
        now = self.clock()

        async with transaction():
            subscription = await self._lock(seller_id)

            # A payment may have cleared the grace period since it was listed
            if expired_at is not None and not subscription.grace_period_expired(
                expired_at
            ):
                logger.info(
                    f"Grace period for seller {seller_id} no longer due, skipping",
                    extra={"seller_id": seller_id},
                )
                return None

            if (
                subscription.external_subscription_ref
                and subscription.status != SubscriptionStatus.CANCELED
            ):
                await self.payment.cancel_subscription(
                    subscription.external_subscription_ref, at_period_end=False
                )

            previous_plan = subscription.plan_id
            subscription = await self.subscription_repo.update(
                subscription.id,
                SubscriptionUpdateModel(
                    plan_id=PlanId.FREE,
                    status=SubscriptionStatus.CANCELED,
                    cancel_at_period_end=False,
                    canceled_at=now,
                    ended_at=now,
                    grace_period_start=None,
                    grace_period_end=None,
                ),
            )
            await self._record_event(
                subscription,
                BillingEventType.GRACE_PERIOD_ENDED,
                {"previous_plan": previous_plan.value},
            )

        logger.info(
            f"Grace period ended for seller {seller_id}, downgraded to free",
            extra={"seller_id": seller_id, "previous_plan": previous_plan.value},
        )
        await self.notifier.send(
            seller_id,
            NotificationKind.GRACE_PERIOD_ENDED,
            {"previous_plan": previous_plan.value, "plan_id": PlanId.FREE.value},
        )
        return subscription

    async def _lock(self, seller_id: int) -> Subscription:
        subscription = await self.subscription_repo.get_by_seller_id_for_update(
            seller_id
        )
        if not subscription:
            raise NotFoundError(f"No subscription found for seller {seller_id}")
        return subscription

    async def _record_event(
        self, subscription: Subscription, event_type: BillingEventType, payload: dict
    ) -> None:
        await self.billing_event_repo.create(
            BillingEventCreateModel(
                seller_id=subscription.seller_id,
                subscription_id=subscription.id,
                event_type=event_type.value,
                payload=payload,
                processed_at=self.clock(),
            )
        )
