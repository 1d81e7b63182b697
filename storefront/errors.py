"""
Exception taxonomy for the order core.

Validation and conflict errors are raised before any mutation takes
place. External dependency errors leave the order in a recoverable state.
Critical inconsistencies (payment captured, stock gone) are not
exceptions: they are reported on the operation result and recorded on
the order for reconciliation.
"""

from typing import Optional


class StorefrontError(Exception):
    """Base class for all order-core errors"""

    pass


class OrderValidationError(StorefrontError):
    """Raised when request input is missing or malformed"""

    pass


class OrderNotFound(StorefrontError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class InvoiceNotFound(StorefrontError):
    def __init__(self, reference: str) -> None:
        super().__init__(f"Invoice for {reference} not found")
        self.reference = reference


class AccessDenied(StorefrontError):
    """Raised when an actor touches an order it does not own"""

    pass


class ConflictError(StorefrontError):
    """Base class for errors rejected because of current state"""

    pass


class InvalidTransition(ConflictError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            f"Cannot transition order from {current} to {requested}"
        )
        self.current = current
        self.requested = requested


class ProductUnavailable(ConflictError):
    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product {product_id} is not available")
        self.product_id = product_id


class VariantUnavailable(ConflictError):
    def __init__(self, product_id: str, variant_id: str) -> None:
        super().__init__(
            f"Variant {variant_id} of product {product_id} is not available"
        )
        self.product_id = product_id
        self.variant_id = variant_id


class InsufficientStock(ConflictError):
    def __init__(
        self,
        item_name: str,
        requested: int,
        available: int,
        product_id: Optional[str] = None,
        variant_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Insufficient stock for {item_name}: requested {requested}, "
            f"available {available}"
        )
        self.item_name = item_name
        self.requested = requested
        self.available = available
        self.product_id = product_id
        self.variant_id = variant_id


class ReservationExpired(ConflictError):
    def __init__(self, order_id: str) -> None:
        super().__init__(
            f"Stock reservation for order {order_id} has expired"
        )
        self.order_id = order_id


class PreconditionFailed(ConflictError):
    """Raised when an operation needs the order in another state"""

    pass


class ConcurrencyConflict(ConflictError):
    """Raised when a conditional write finds the record changed"""

    pass


class NumberCollision(ConcurrencyConflict):
    """Raised when a freshly derived order/invoice number is taken"""

    pass


class DuplicateInvoice(ConcurrencyConflict):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Invoice already exists for order {order_id}")
        self.order_id = order_id


class PaymentGatewayError(StorefrontError):
    def __init__(
        self, message: str, status_code: Optional[int] = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
