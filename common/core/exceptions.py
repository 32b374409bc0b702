class AppException(Exception):
    """Base application exception."""

    pass


class NotFoundError(AppException):
    """Resource not found exception."""

    pass


class ValidationError(AppException):
    """Validation error exception."""

    pass


class PaymentProviderError(AppException):
    """Payment provider call failed, timed out or was rejected."""

    def __init__(self, message: str, operation: str = ""):
        super().__init__(message)
        self.operation = operation


class WebhookVerificationError(AppException):
    """Webhook signature or payload could not be verified."""

    pass


class SubscriptionAlreadyExistsError(AppException):
    """Seller already has a live subscription."""

    pass


class InvalidPlanChangeError(ValidationError):
    """Requested plan change is not allowed from the current state."""

    pass
