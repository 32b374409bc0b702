"""
Repository for subscription management.
"""

from typing import Optional
from datetime import datetime
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from common.repositories.base import BaseRepository
from marketplace.billing.models.database.subscription import SubscriptionEntity
from marketplace.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
)
from marketplace.billing.models.domain.enums import SubscriptionStatus
from common.core.otel_axiom_exporter import trace_span


class SubscriptionRepository(BaseRepository[SubscriptionEntity, Subscription]):
    """Repository for managing seller subscriptions."""

    def __init__(self, db_session: Optional[AsyncSession] = None):
        super().__init__(SubscriptionEntity, Subscription, db_session)

    @trace_span
    async def get_by_seller_id(self, seller_id: int) -> Optional[Subscription]:
        """Get the subscription row for a seller (live or canceled)."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity).where(
                    SubscriptionEntity.seller_id == seller_id
                )
            )
            db_subscription = result.scalar_one_or_none()
            return self._entity_to_domain(db_subscription) if db_subscription else None

    @trace_span
    async def get_by_seller_id_for_update(
        self, seller_id: int
    ) -> Optional[Subscription]:
        """
        Get a seller's subscription and lock the row until the surrounding
        transaction ends. Must be called inside transaction().
        """
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(SubscriptionEntity.seller_id == seller_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            db_subscription = result.scalar_one_or_none()
            return self._entity_to_domain(db_subscription) if db_subscription else None

    @trace_span
    async def get_by_external_subscription_ref(
        self, external_subscription_ref: str
    ) -> Optional[Subscription]:
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity).where(
                    SubscriptionEntity.external_subscription_ref
                    == external_subscription_ref
                )
            )
            db_subscription = result.scalar_one_or_none()
            return self._entity_to_domain(db_subscription) if db_subscription else None

    @trace_span
    async def get_expired_grace_periods(self, now: datetime) -> list[Subscription]:
        """Get past_due subscriptions whose grace period has run out."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity)
                .where(
                    SubscriptionEntity.status == SubscriptionStatus.PAST_DUE.value,
                    SubscriptionEntity.grace_period_end.is_not(None),
                    SubscriptionEntity.grace_period_end <= now,
                )
                .order_by(SubscriptionEntity.grace_period_end)
            )
            db_subscriptions = result.scalars().all()
            return [self._entity_to_domain(sub) for sub in db_subscriptions]

    @trace_span
    async def get_renewing_between(
        self, start: datetime, end: datetime
    ) -> list[Subscription]:
        """Get live, paid subscriptions whose period ends in [start, end]."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity).where(
                    SubscriptionEntity.current_period_end >= start,
                    SubscriptionEntity.current_period_end <= end,
                    SubscriptionEntity.status.in_(
                        [
                            SubscriptionStatus.ACTIVE.value,
                            SubscriptionStatus.TRIALING.value,
                        ]
                    ),
                    SubscriptionEntity.cancel_at_period_end == False,  # noqa
                    SubscriptionEntity.external_subscription_ref.is_not(None),
                )
            )
            db_subscriptions = result.scalars().all()
            return [self._entity_to_domain(sub) for sub in db_subscriptions]

    @trace_span
    async def create_if_absent(
        self, create_model: SubscriptionCreateModel
    ) -> Optional[Subscription]:
        """
        Insert the seller's subscription row unless one already exists.

        Returns None when a concurrent request inserted it first. The insert
        runs in a savepoint so the caller's transaction stays usable.
        """
        async with self._get_session() as session:
            db_obj = SubscriptionEntity(**create_model.model_dump(exclude_none=True))
            try:
                async with session.begin_nested():
                    session.add(db_obj)
                    await session.flush()
            except IntegrityError:
                return None
            await session.refresh(db_obj)
            return self._entity_to_domain(db_obj)
