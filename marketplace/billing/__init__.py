"""
Seller billing - plan subscriptions, usage limits and payment recovery.

- SubscriptionService: create, change and cancel plans, mirrored to Stripe
- UsageMeterService: per-month product and order counts against plan limits
- GracePeriodService: keeps paid service running after a failed payment
- WebhookReconciler: applies Stripe webhook events to local subscription state
- BillingSweepService: hourly usage recording and grace period expiry
"""
