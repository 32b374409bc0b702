"""
Database entity for subscriptions.
"""

from sqlalchemy import Boolean, Column, String, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from common.core.time_utils import utcnow
from common.db.base import Base, BigIntegerType


class SubscriptionEntity(Base):
    """
    Seller subscription database entity.

    Stores plan, status, grace period and external (Stripe) references.
    One-to-one with sellers; rows are never deleted.
    """

    __tablename__ = "subscriptions"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    seller_id = Column(
        BigIntegerType,
        ForeignKey("sellers.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    # Subscription details
    plan_id = Column(String(50), nullable=False, index=True)  # free, pro, business
    status = Column(
        String(50), nullable=False, index=True
    )  # trialing, active, past_due, canceled, incomplete

    # Billing cycle
    current_period_start = Column(DateTime, nullable=False)
    current_period_end = Column(DateTime, nullable=False)
    cancel_at_period_end = Column(
        Boolean, nullable=False, default=False, server_default="false"
    )

    # Lifecycle timestamps
    canceled_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)

    # Grace period after a failed payment
    grace_period_start = Column(DateTime, nullable=True)
    grace_period_end = Column(DateTime, nullable=True)
    last_payment_failed = Column(
        Boolean, nullable=False, default=False, server_default="false"
    )

    # External platform IDs
    external_customer_ref = Column(String(255), nullable=True, index=True)
    external_subscription_ref = Column(
        String(255), nullable=True, unique=True, index=True
    )
    external_price_ref = Column(String(255), nullable=True)

    # Standard timestamps
    created_at = Column(
        DateTime, nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at = Column(
        DateTime,
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    __table_args__ = (
        Index("idx_subscription_status_grace_end", "status", "grace_period_end"),
        Index("idx_subscription_period_end", "current_period_end"),
    )
