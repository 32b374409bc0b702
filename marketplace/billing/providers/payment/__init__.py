"""Payment providers - subscription billing and webhook decoding."""

from marketplace.billing.providers.payment.interface import PaymentProviderInterface
from marketplace.billing.providers.payment.factory import get_payment_provider

__all__ = [
    "PaymentProviderInterface",
    "get_payment_provider",
]
