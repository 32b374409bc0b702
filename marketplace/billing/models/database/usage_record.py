"""
Database entity for per-period usage records.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from common.core.time_utils import utcnow
from common.db.base import Base, BigIntegerType


class UsageRecordEntity(Base):
    """
    One row per seller per billing period (calendar month).

    Created lazily and updated in place by the usage meter.
    """

    __tablename__ = "usage_records"

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

    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)

    products_used = Column(Integer, nullable=False, server_default="0")
    orders_processed = Column(Integer, nullable=False, server_default="0")
    storage_used_mb = Column(Integer, nullable=False, server_default="0")

    # Limits in force when the record was last written (NULL = unlimited)
    products_limit = Column(Integer, nullable=True)
    orders_limit = Column(Integer, nullable=True)

    limit_exceeded = Column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    warnings_sent = Column(Integer, nullable=False, default=0, server_default="0")

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
        UniqueConstraint("seller_id", "period_start", name="uq_usage_seller_period"),
    )
