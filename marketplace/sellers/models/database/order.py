from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Integer
from sqlalchemy.sql import func

from common.core.time_utils import utcnow
from common.db.base import Base, BigIntegerType


class OrderEntity(Base):
    __tablename__ = "orders"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    seller_id = Column(
        BigIntegerType,
        ForeignKey("sellers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = Column(String(50), nullable=False, server_default="pending")
    total_cents = Column(Integer, nullable=False, server_default="0")

    created_at = Column(
        DateTime, nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (Index("idx_orders_seller_created", "seller_id", "created_at"),)
