"""
Translation of order-core exceptions into HTTP errors.
"""

import logging

from fastapi import HTTPException

from storefront.errors import (
    AccessDenied,
    ConflictError,
    InvoiceNotFound,
    OrderNotFound,
    OrderValidationError,
    PaymentGatewayError,
    StorefrontError,
)

logger = logging.getLogger(__name__)


def http_error(e: StorefrontError) -> HTTPException:
    """Map an order-core exception to the HTTPException to raise."""
    if isinstance(e, OrderValidationError):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, (OrderNotFound, InvoiceNotFound)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, AccessDenied):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, ConflictError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, PaymentGatewayError):
        # gateway details stay in the log
        return HTTPException(
            status_code=502, detail="Payment gateway unavailable"
        )
    return HTTPException(status_code=400, detail=str(e))


def internal_error(
    action: str, e: Exception, **context: object
) -> HTTPException:
    logger.error(
        f"Failed to {action}",
        extra={
            **context,
            "error_type": type(e).__name__,
            "error_message": str(e),
        },
        exc_info=True,
    )
    # Return a generic error message to prevent information leakage
    return HTTPException(
        status_code=500,
        detail=f"Failed to {action} due to an internal error.",
    )
