"""
Database entity for plan change history.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.sql import func

from common.core.time_utils import utcnow
from common.db.base import Base, BigIntegerType


class PlanChangeRequestEntity(Base):
    """Immutable record of one plan change (upgrade or downgrade)."""

    __tablename__ = "plan_change_requests"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    seller_id = Column(
        BigIntegerType,
        ForeignKey("sellers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subscription_id = Column(
        BigIntegerType,
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
    )

    from_plan = Column(String(50), nullable=False)
    to_plan = Column(String(50), nullable=False)
    change_type = Column(String(20), nullable=False)  # upgrade, downgrade
    status = Column(String(20), nullable=False)  # completed, scheduled
    effective_date = Column(DateTime, nullable=False)

    created_at = Column(
        DateTime, nullable=False, default=utcnow, server_default=func.now()
    )
