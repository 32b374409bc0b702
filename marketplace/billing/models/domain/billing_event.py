"""
Domain models for the billing audit log.
"""

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field


class BillingEvent(BaseModel):
    """Append-only audit entry.

    ``external_event_id`` is the provider's event id; it is unique and is
    what makes webhook redelivery a no-op.
    """

    id: int
    seller_id: int
    subscription_id: Optional[int] = None
    event_type: str
    external_event_id: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)
    processed_at: datetime

    class Config:
        from_attributes = True


class BillingEventCreateModel(BaseModel):
    seller_id: int
    subscription_id: Optional[int] = None
    event_type: str
    external_event_id: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)
    processed_at: datetime
