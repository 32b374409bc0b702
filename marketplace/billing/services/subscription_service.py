"""
Service for managing subscriptions.

Every write runs inside one transaction() that holds the seller's
subscription row lock. Payment provider calls happen inside that
transaction, so a provider failure rolls back and leaves no local state.
"""

from typing import Any, Optional

from common.core.exceptions import (
    InvalidPlanChangeError,
    NotFoundError,
    SubscriptionAlreadyExistsError,
    ValidationError,
)
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.core.time_utils import Clock, month_bounds, utcnow
from common.db.scoped import transaction
from marketplace.billing.models.domain.billing_event import BillingEventCreateModel
from marketplace.billing.models.domain.enums import (
    BillingEventType,
    PlanChangeStatus,
    PlanId,
    SubscriptionStatus,
)
from marketplace.billing.models.domain.provider_events import ProviderSubscription
from marketplace.billing.models.domain.subscription import (
    PlanChangeRequestCreateModel,
    Subscription,
    SubscriptionCreateModel,
    SubscriptionResult,
    SubscriptionUpdateModel,
)
from marketplace.billing.providers.payment.factory import get_payment_provider
from marketplace.billing.providers.payment.interface import PaymentProviderInterface
from marketplace.billing.repositories.billing_event_repository import (
    BillingEventRepository,
)
from marketplace.billing.repositories.plan_change_repository import (
    PlanChangeRepository,
)
from marketplace.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)
from marketplace.billing.services.plan_catalog import PlanCatalog, get_plan_catalog
from marketplace.sellers.models.domain.seller import Seller
from marketplace.sellers.repositories.seller_repository import SellerRepository

logger = get_logger(__name__)


def _parse_plan(plan_id: PlanId | str) -> PlanId:
    parsed = plan_id if isinstance(plan_id, PlanId) else PlanId.parse(plan_id)
    if parsed is None:
        raise ValidationError(f"Unknown plan: {plan_id}")
    return parsed


class SubscriptionService:
    """Service for subscription lifecycle management."""

    def __init__(
        self,
        payment_provider: Optional[PaymentProviderInterface] = None,
        catalog: Optional[PlanCatalog] = None,
        clock: Clock = utcnow,
    ):
        self.subscription_repo = SubscriptionRepository()
        self.plan_change_repo = PlanChangeRepository()
        self.billing_event_repo = BillingEventRepository()
        self.seller_repo = SellerRepository()
        self.payment = payment_provider or get_payment_provider()
        self.catalog = catalog or get_plan_catalog()
        self.clock = clock

    @trace_span
    async def get_subscription(self, seller_id: int) -> Subscription:
        subscription = await self.subscription_repo.get_by_seller_id(seller_id)
        if not subscription:
            raise NotFoundError(f"No subscription found for seller {seller_id}")
        return subscription

    @trace_span
    async def ensure_subscription(self, seller_id: int) -> Subscription:
        """
        Get the seller's subscription, creating a free one if missing.

        Sellers that signed up before billing existed have no row yet.
        """
        existing = await self.subscription_repo.get_by_seller_id(seller_id)
        if existing:
            return existing

        await self._get_seller(seller_id)
        period_start, period_end = month_bounds(self.clock())
        created = await self.subscription_repo.create_if_absent(
            SubscriptionCreateModel(
                seller_id=seller_id,
                plan_id=PlanId.FREE,
                status=SubscriptionStatus.ACTIVE,
                current_period_start=period_start,
                current_period_end=period_end,
            )
        )
        if created is None:
            # Lost the race to a concurrent backfill
            return await self.get_subscription(seller_id)

        logger.info(
            f"Backfilled free subscription for seller {seller_id}",
            extra={"seller_id": seller_id, "subscription_id": created.id},
        )
        return created

    @trace_span
    async def create_subscription(
        self,
        seller_id: int,
        plan_id: PlanId | str,
        payment_method_ref: Optional[str] = None,
    ) -> SubscriptionResult:
        """
        Create a subscription for a seller.

        Free plans are local only. Paid plans create the Stripe customer and
        subscription first and mirror the returned status and period.

        Raises:
            SubscriptionAlreadyExistsError: seller already has a live subscription
            PaymentProviderError: provider call failed; nothing was written
        """
        plan = _parse_plan(plan_id)
        seller = await self._get_seller(seller_id)
        now = self.clock()

        logger.info(
            f"Creating {plan.value} subscription for seller {seller_id}",
            extra={"seller_id": seller_id, "plan_id": plan.value},
        )

        async with transaction():
            existing = await self.subscription_repo.get_by_seller_id_for_update(
                seller_id
            )
            if existing and existing.is_live():
                raise SubscriptionAlreadyExistsError(
                    f"Seller {seller_id} already has an active subscription"
                )

            client_secret = None
            if plan.is_paid():
                lifecycle = (
                    f"renew-{existing.id}-{int(existing.updated_at.timestamp())}"
                    if existing
                    else "initial"
                )
                provider_sub = await self._create_external_subscription(
                    seller, plan, payment_method_ref, lifecycle
                )
                fields = self._fields_from_provider(provider_sub, plan)
                client_secret = provider_sub.client_secret
            else:
                period_start, period_end = month_bounds(now)
                fields = {
                    "plan_id": plan,
                    "status": SubscriptionStatus.ACTIVE,
                    "current_period_start": period_start,
                    "current_period_end": period_end,
                    "cancel_at_period_end": False,
                    "external_subscription_ref": None,
                    "external_price_ref": None,
                }

            if existing:
                # New lifecycle on the seller's canceled row
                subscription = await self.subscription_repo.update(
                    existing.id,
                    SubscriptionUpdateModel(
                        **fields,
                        canceled_at=None,
                        ended_at=None,
                        grace_period_start=None,
                        grace_period_end=None,
                        last_payment_failed=False,
                    ),
                )
            else:
                subscription = await self.subscription_repo.create_if_absent(
                    SubscriptionCreateModel(seller_id=seller_id, **fields)
                )
                if subscription is None:
                    raise SubscriptionAlreadyExistsError(
                        f"Seller {seller_id} already has an active subscription"
                    )

            await self._record_event(
                subscription,
                BillingEventType.SUBSCRIPTION_CREATED,
                {
                    "plan_id": plan.value,
                    "status": subscription.status.value,
                    "external_subscription_ref": subscription.external_subscription_ref,
                },
            )

        logger.info(
            f"Created subscription {subscription.id} for seller {seller_id}",
            extra={
                "subscription_id": subscription.id,
                "seller_id": seller_id,
                "plan_id": plan.value,
                "status": subscription.status.value,
            },
        )
        return SubscriptionResult(subscription=subscription, client_secret=client_secret)

    @trace_span
    async def change_subscription(
        self,
        seller_id: int,
        new_plan_id: PlanId | str,
        effective_immediately: bool = True,
    ) -> SubscriptionResult:
        """
        Upgrade or downgrade a seller's plan.

        Downgrading to free cancels the Stripe subscription, immediately or
        at period end. Paid to paid changes update the Stripe price
        (prorated only when immediate). A seller without a usable Stripe
        subscription gets a new one.

        Raises:
            NotFoundError: seller has no subscription
            InvalidPlanChangeError: already on the requested plan
            PaymentProviderError: provider call failed; nothing was written
        """
        new_plan = _parse_plan(new_plan_id)
        now = self.clock()

        async with transaction():
            current = await self.subscription_repo.get_by_seller_id_for_update(
                seller_id
            )
            if not current:
                raise NotFoundError(f"No subscription found for seller {seller_id}")

            old_plan = current.effective_plan_id
            if new_plan == old_plan:
                raise InvalidPlanChangeError(
                    f"Seller {seller_id} is already on the {new_plan.value} plan"
                )

            has_external = bool(
                current.external_subscription_ref
                and current.status != SubscriptionStatus.CANCELED
            )
            client_secret = None

            if new_plan == PlanId.FREE:
                if has_external:
                    await self.payment.cancel_subscription(
                        current.external_subscription_ref,
                        at_period_end=not effective_immediately,
                    )
                if effective_immediately:
                    update = SubscriptionUpdateModel(
                        plan_id=PlanId.FREE,
                        status=SubscriptionStatus.CANCELED,
                        cancel_at_period_end=False,
                        canceled_at=now,
                        ended_at=now,
                        grace_period_start=None,
                        grace_period_end=None,
                    )
                    change_status = PlanChangeStatus.COMPLETED
                    effective_date = now
                else:
                    update = SubscriptionUpdateModel(cancel_at_period_end=True)
                    change_status = PlanChangeStatus.SCHEDULED
                    effective_date = current.current_period_end

            else:
                price_ref = self.catalog.price_for_plan(new_plan)
                if not price_ref:
                    raise InvalidPlanChangeError(
                        f"Plan {new_plan.value} has no payment provider price"
                    )

                if has_external:
                    provider_sub = await self.payment.update_subscription_price(
                        current.external_subscription_ref,
                        price_ref,
                        prorate=effective_immediately,
                    )
                    fields = self._fields_from_provider(provider_sub, new_plan)
                    fields["status"] = current.reconcile_status(provider_sub.status)
                    update = SubscriptionUpdateModel(**fields)
                else:
                    seller = await self._get_seller(seller_id)
                    provider_sub = await self._create_external_subscription(
                        seller,
                        new_plan,
                        payment_method_ref=None,
                        lifecycle=f"change-{current.id}-{int(current.updated_at.timestamp())}",
                    )
                    client_secret = provider_sub.client_secret
                    update = SubscriptionUpdateModel(
                        **self._fields_from_provider(provider_sub, new_plan),
                        canceled_at=None,
                        ended_at=None,
                        grace_period_start=None,
                        grace_period_end=None,
                        last_payment_failed=False,
                    )
                change_status = PlanChangeStatus.COMPLETED
                effective_date = now

            subscription = await self.subscription_repo.update(current.id, update)

            change_type = self.catalog.change_type(old_plan, new_plan)
            await self.plan_change_repo.create(
                PlanChangeRequestCreateModel(
                    seller_id=seller_id,
                    subscription_id=current.id,
                    from_plan=old_plan,
                    to_plan=new_plan,
                    change_type=change_type,
                    status=change_status,
                    effective_date=effective_date,
                )
            )
            await self._record_event(
                subscription,
                BillingEventType.PLAN_CHANGED,
                {
                    "from_plan": old_plan.value,
                    "to_plan": new_plan.value,
                    "change_type": change_type.value,
                    "effective_immediately": effective_immediately,
                },
            )

        logger.info(
            f"Changed seller {seller_id} plan from {old_plan.value} to {new_plan.value}",
            extra={
                "seller_id": seller_id,
                "from_plan": old_plan.value,
                "to_plan": new_plan.value,
                "change_type": change_type.value,
                "status": change_status.value,
            },
        )
        return SubscriptionResult(subscription=subscription, client_secret=client_secret)

    @trace_span
    async def cancel_subscription(
        self, seller_id: int, at_period_end: bool = True
    ) -> Subscription:
        """
        Cancel a subscription.

        Paid subscriptions cancelled at period end keep their plan until the
        provider reports the deletion. Local-only (free) subscriptions have
        nothing left to run out and are cancelled immediately.
        """
        now = self.clock()

        async with transaction():
            current = await self.subscription_repo.get_by_seller_id_for_update(
                seller_id
            )
            if not current:
                raise NotFoundError(f"No subscription found for seller {seller_id}")
            if not current.is_live():
                raise InvalidPlanChangeError(
                    f"Subscription for seller {seller_id} is already canceled"
                )

            if current.external_subscription_ref:
                await self.payment.cancel_subscription(
                    current.external_subscription_ref, at_period_end=at_period_end
                )

            if at_period_end and current.external_subscription_ref:
                update = SubscriptionUpdateModel(cancel_at_period_end=True)
            else:
                update = SubscriptionUpdateModel(
                    plan_id=PlanId.FREE,
                    status=SubscriptionStatus.CANCELED,
                    cancel_at_period_end=False,
                    canceled_at=now,
                    ended_at=now,
                    grace_period_start=None,
                    grace_period_end=None,
                )
            subscription = await self.subscription_repo.update(current.id, update)

            await self._record_event(
                subscription,
                BillingEventType.SUBSCRIPTION_CANCELED,
                {"plan_id": current.plan_id.value, "at_period_end": at_period_end},
            )

        logger.info(
            f"Canceled subscription {subscription.id} for seller {seller_id}",
            extra={
                "seller_id": seller_id,
                "subscription_id": subscription.id,
                "at_period_end": at_period_end,
            },
        )
        return subscription

    async def _get_seller(self, seller_id: int) -> Seller:
        seller = await self.seller_repo.get(seller_id)
        if not seller:
            raise NotFoundError(f"Seller {seller_id} not found")
        return seller

    async def _create_external_subscription(
        self,
        seller: Seller,
        plan: PlanId,
        payment_method_ref: Optional[str],
        lifecycle: str,
    ) -> ProviderSubscription:
        price_ref = self.catalog.price_for_plan(plan)
        if not price_ref:
            raise InvalidPlanChangeError(
                f"Plan {plan.value} has no payment provider price"
            )

        customer_ref = await self.payment.create_or_get_customer(
            seller_id=seller.id, email=seller.email, name=seller.display_name
        )
        return await self.payment.create_subscription(
            customer_ref=customer_ref,
            price_ref=price_ref,
            metadata={"seller_id": str(seller.id), "plan_id": plan.value},
            payment_method_ref=payment_method_ref,
            idempotency_key=f"subscription-{seller.id}-{price_ref}-{lifecycle}",
        )

    @staticmethod
    def _fields_from_provider(
        provider_sub: ProviderSubscription, plan: PlanId
    ) -> dict[str, Any]:
        return {
            "plan_id": plan,
            "status": provider_sub.status,
            "current_period_start": provider_sub.current_period_start,
            "current_period_end": provider_sub.current_period_end,
            "cancel_at_period_end": provider_sub.cancel_at_period_end,
            "external_customer_ref": provider_sub.external_customer_ref,
            "external_subscription_ref": provider_sub.external_subscription_ref,
            "external_price_ref": provider_sub.price_ref,
        }

    async def _record_event(
        self,
        subscription: Subscription,
        event_type: BillingEventType,
        payload: dict[str, Any],
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
