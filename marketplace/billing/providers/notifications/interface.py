"""
Interface for seller notifications.

Delivery is fire-and-forget: implementations log failures and never raise,
so a broken notification channel cannot block billing state changes.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from marketplace.billing.models.domain.enums import NotificationKind


class NotificationSinkInterface(ABC):
    """Abstract interface for delivering notifications to sellers."""

    @abstractmethod
    async def send(
        self,
        seller_id: int,
        kind: NotificationKind,
        payload: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Send a notification to a seller.

        Args:
            seller_id: Recipient seller
            kind: What happened
            payload: Kind-specific details (usage numbers, grace end, ...)

        Returns:
            True if the notification was handed off, False otherwise
        """
        pass
