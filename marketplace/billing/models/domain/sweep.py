"""
Result models for the periodic billing sweep.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class GraceExpiryResult(BaseModel):
    expired_seller_ids: list[int] = Field(default_factory=list)
    errors: dict[int, str] = Field(default_factory=dict)


class SweepSummary(BaseModel):
    """Counts from one sweep run. Per-seller failures land in ``errors``."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    skipped: bool = False  # another replica holds the sweep lock

    sellers_processed: int = 0
    usage_recorded: int = 0
    limits_exceeded: int = 0
    warnings_sent: int = 0
    grace_periods_expired: int = 0
    renewals_upcoming: int = 0

    errors: dict[int, str] = Field(default_factory=dict)
