from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from common.core.time_utils import utcnow
from common.db.base import Base, BigIntegerType


class SellerEntity(Base):
    __tablename__ = "sellers"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    store_name = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow
    )
