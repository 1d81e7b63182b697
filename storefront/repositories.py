"""
Repository and collaborator interfaces defined as Protocols.

All repository operations in this module follow these principles:

- **Conditional writes**: Every order write names the status it expects
  to overwrite. A write that finds a different persisted status raises
  ConcurrencyConflict instead of silently clobbering a concurrent change.

- **Atomic stock**: Stock decrements succeed only when enough stock is
  left, checked and applied in one storage operation.

- **Domain Objects**: Methods accept and return domain objects or
  primitives, never framework-specific types.

- **Workflow Safety**: Non-deterministic work (ID generation, clocks,
  network calls) happens inside implementations, so the same protocols can
  be satisfied by Temporal workflow proxies that delegate to activities.

Architectural Notes:

- These are pure interfaces with no implementation details
- Use case classes depend on these protocols, not concrete implementations
- Implementations are validated at construction time with isinstance()
  against the @runtime_checkable protocols (see storefront.validation)
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from storefront.domain import (
    Invoice,
    Order,
    OrderQuery,
    OrderStatus,
    Product,
    RemoteOrder,
    RemotePayment,
    RemoteRefund,
    RenderedDocument,
)


@runtime_checkable
class OrderRepository(Protocol):
    """Persistence for the Order aggregate."""

    async def generate_order_id(self) -> str:
        """Generate a unique, opaque order identifier."""
        ...

    async def generate_order_number(self, day: date) -> str:
        """Derive the next ``ORD-<YYYYMMDD>-<seq>`` number for ``day``.

        The number is read from the highest one already stored for the
        day. It is not reserved; create_order enforces uniqueness.
        """
        ...

    async def create_order(self, order: Order) -> None:
        """Insert a new order.

        Raises:
            NumberCollision: If the order number is already taken
        """
        ...

    async def save_order(
        self, order: Order, expected_status: OrderStatus
    ) -> None:
        """Persist ``order`` only if the stored status is still
        ``expected_status``.

        Args:
            order: Mutated order to write
            expected_status: Status read before the mutation

        Raises:
            ConcurrencyConflict: If the stored status has changed, or the
                order does not exist
        """
        ...

    async def get_order(self, order_id: str) -> Optional[Order]:
        """Retrieve an order by ID, None if missing."""
        ...

    async def get_order_by_remote_order_id(
        self, remote_order_id: str
    ) -> Optional[Order]:
        """Retrieve the order a gateway order id was created for."""
        ...

    async def find_open_reservations(
        self, user_id: str, now: datetime
    ) -> List[Order]:
        """Orders of ``user_id`` still holding an unexpired reservation."""
        ...

    async def find_expired_reservations(self, now: datetime) -> List[Order]:
        """Orders holding a reservation that expired before ``now`` while
        PENDING or PAYMENT_FAILED."""
        ...

    async def list_orders(self, query: OrderQuery) -> List[Order]:
        """List orders matching ``query``, newest first."""
        ...


@runtime_checkable
class CatalogRepository(Protocol):
    """Product catalog collaborator.

    Catalog metadata is owned elsewhere; this core only mutates stock
    quantities, and only through the two conditional operations below.
    """

    async def get_product(self, product_id: str) -> Optional[Product]:
        """Read a product with its variants and current stock."""
        ...

    async def decrement_stock(
        self, product_id: str, variant_id: Optional[str], quantity: int
    ) -> bool:
        """Atomically decrement stock if at least ``quantity`` is left.

        Returns:
            True when the decrement was applied, False when stock was
            insufficient or the product/variant is missing. Stock never
            goes negative.
        """
        ...

    async def increment_stock(
        self, product_id: str, variant_id: Optional[str], quantity: int
    ) -> None:
        """Return ``quantity`` units to stock."""
        ...


@runtime_checkable
class InvoiceRepository(Protocol):
    """Persistence for invoices. Invoices are never deleted."""

    async def generate_invoice_id(self) -> str:
        ...

    async def generate_invoice_number(self, day: date) -> str:
        """Derive the next ``INV-<YYYYMMDD>-<seq>`` number for ``day``."""
        ...

    async def create_invoice(self, invoice: Invoice) -> None:
        """Insert a new invoice.

        Raises:
            DuplicateInvoice: If the order already has an invoice
            NumberCollision: If the invoice number is already taken
        """
        ...

    async def save_invoice(self, invoice: Invoice) -> None:
        """Update an existing invoice (document URL, status)."""
        ...

    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        ...

    async def get_invoice_by_order(self, order_id: str) -> Optional[Invoice]:
        ...

    async def list_invoices(self, user_id: Optional[str]) -> List[Invoice]:
        """List invoices, newest first, optionally for one user."""
        ...


@runtime_checkable
class PaymentGateway(Protocol):
    """Remote payment gateway (Razorpay-style).

    Implementations only talk to the gateway; persisting the identifiers
    they return is the orchestrator's job.
    """

    async def create_remote_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: Dict[str, str],
    ) -> RemoteOrder:
        """Open a payment intent for ``amount`` paise.

        Raises:
            PaymentGatewayError: On invalid input, transport failure or a
                non-2xx response
        """
        ...

    def verify_signature(
        self, remote_order_id: str, remote_payment_id: str, signature: str
    ) -> bool:
        """Check a checkout callback signature in constant time.

        A mismatch (or a missing part) is a normal negative result, never
        an exception.
        """
        ...

    async def fetch_payment(self, remote_payment_id: str) -> RemotePayment:
        ...

    async def create_refund(
        self, remote_payment_id: str, amount: int, notes: Dict[str, str]
    ) -> RemoteRefund:
        ...


@runtime_checkable
class NotificationService(Protocol):
    """Fire-and-forget buyer notifications (push/SMS/e-mail)."""

    async def notify(
        self, user_id: str, event_type: str, payload: Dict[str, Any]
    ) -> None:
        ...


@runtime_checkable
class InvoiceRenderer(Protocol):
    """Turns an invoice record into a printable document."""

    async def render_invoice(self, invoice: Invoice) -> RenderedDocument:
        ...


@runtime_checkable
class InvoiceRenderScheduler(Protocol):
    """Entry point into the best-effort invoice document pipeline.

    The in-process implementation renders immediately; the Temporal one
    starts a retrying workflow and returns.
    """

    async def schedule_render(self, invoice_id: str) -> None:
        ...
