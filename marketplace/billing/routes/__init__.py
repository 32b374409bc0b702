"""Billing API routes."""

from marketplace.billing.routes import billing, webhooks, plans

__all__ = ["billing", "webhooks", "plans"]
