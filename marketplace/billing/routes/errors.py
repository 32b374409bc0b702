"""Translate billing domain errors into HTTP errors."""

from fastapi import HTTPException, status

from common.core.exceptions import (
    AppException,
    NotFoundError,
    PaymentProviderError,
    SubscriptionAlreadyExistsError,
    ValidationError,
    WebhookVerificationError,
)
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)

_STATUS_BY_ERROR = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (SubscriptionAlreadyExistsError, status.HTTP_409_CONFLICT),
    (PaymentProviderError, status.HTTP_502_BAD_GATEWAY),
    (WebhookVerificationError, status.HTTP_400_BAD_REQUEST),
    # InvalidPlanChangeError is a ValidationError
    (ValidationError, status.HTTP_400_BAD_REQUEST),
)


def to_http_exception(error: AppException) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))

    logger.error(f"Unmapped billing error: {error}", exc_info=error)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Billing operation failed",
    )
