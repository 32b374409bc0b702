"""
Database entity for the billing audit log.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Index, JSON
from sqlalchemy.sql import func

from common.core.time_utils import utcnow
from common.db.base import Base, BigIntegerType


class BillingEventEntity(Base):
    """
    Append-only billing audit log.

    external_event_id holds the payment provider's event id for webhook
    events and is unique, which makes redelivered events detectable.
    """

    __tablename__ = "billing_events"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    seller_id = Column(
        BigIntegerType,
        ForeignKey("sellers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subscription_id = Column(
        BigIntegerType,
        ForeignKey("subscriptions.id", ondelete="SET NULL"),
        nullable=True,
    )

    event_type = Column(String(100), nullable=False, index=True)
    external_event_id = Column(String(255), nullable=True, unique=True)

    # Event summary (JSON for flexibility)
    # e.g. grace_period_started: {grace_period_days: 7, grace_period_end: "..."}
    payload = Column(JSON, nullable=False, default=dict)

    processed_at = Column(
        DateTime, nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_billing_events_seller_type_date", "seller_id", "event_type", "processed_at"),
    )
