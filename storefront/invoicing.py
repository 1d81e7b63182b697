"""
GST invoice generation and the document rendering pipeline.

InvoiceGenerator owns the invoice record and the tax math; it must
succeed for a paid order. InvoiceDocumentPipeline turns a stored invoice
into a document and stores it; it is best-effort and retryable. The two
are connected only by the invoice id.
"""

import logging
from pathlib import PurePosixPath
from typing import Dict, List, Optional

from storefront.config import StoreConfig
from storefront.domain import (
    Actor,
    Clock,
    Invoice,
    InvoiceItem,
    Order,
    Product,
    utc_now,
)
from storefront.errors import (
    AccessDenied,
    DuplicateInvoice,
    InvoiceNotFound,
    NumberCollision,
    OrderNotFound,
    PreconditionFailed,
)
from storefront.repositories import (
    CatalogRepository,
    InvoiceRenderer,
    InvoiceRenderScheduler,
    InvoiceRepository,
    OrderRepository,
)
from storefront.state_machine import STOCK_DEDUCTED_STATES
from storefront.tax import calculate_gst, is_intra_state
from storefront.validation import (
    ensure_catalog_repository,
    ensure_file_storage_repository,
    ensure_invoice_renderer,
    ensure_invoice_repository,
    ensure_order_repository,
    ensure_render_scheduler,
)
from util.repositories import FileStorageRepository

logger = logging.getLogger(__name__)

NUMBER_ATTEMPTS = 5


class InvoiceGenerator:
    """
    Creates the single GST invoice of a paid order.

    ``generate`` is idempotent: an order that already has an invoice gets
    that invoice back unchanged. The invoice is persisted before any
    rendering is attempted, and rendering failures are logged, never
    raised.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        catalog_repo: CatalogRepository,
        invoice_repo: InvoiceRepository,
        config: StoreConfig,
        render_scheduler: Optional[InvoiceRenderScheduler] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.order_repo = ensure_order_repository(order_repo)
        self.catalog_repo = ensure_catalog_repository(catalog_repo)
        self.invoice_repo = ensure_invoice_repository(invoice_repo)
        self.config = config
        self.render_scheduler = (
            ensure_render_scheduler(render_scheduler)
            if render_scheduler is not None
            else None
        )
        self.clock = clock

    async def _load_products(self, order: Order) -> Dict[str, Product]:
        products: Dict[str, Product] = {}
        for item in order.items:
            if item.product_id in products:
                continue
            product = await self.catalog_repo.get_product(item.product_id)
            if product is not None:
                products[item.product_id] = product
        return products

    def _build_items(
        self, order: Order, products: Dict[str, Product], intra_state: bool
    ) -> List[InvoiceItem]:
        items = []
        for item in order.items:
            product = products.get(item.product_id)
            # a missing or zero product rate falls back to the store default
            rate = (
                product.tax_rate
                if product is not None and product.tax_rate
                else self.config.default_tax_rate
            )
            gst = calculate_gst(item.total, rate, intra_state)
            items.append(
                InvoiceItem(
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    name=item.name,
                    variant_name=item.variant_name,
                    sku=item.sku,
                    hsn_code=product.hsn_code if product else None,
                    quantity=item.quantity,
                    unit_price=item.price,
                    taxable_amount=gst.taxable_amount,
                    gst_rate=gst.gst_rate,
                    cgst=gst.cgst,
                    sgst=gst.sgst,
                    igst=gst.igst,
                    total_tax=gst.total_tax,
                    total_with_tax=gst.total_with_tax,
                )
            )
        return items

    async def generate(self, order_id: str) -> Invoice:
        """
        Return the order's invoice, creating it on first call.

        Raises:
            OrderNotFound: If the order does not exist
            PreconditionFailed: If the order has not reached the paid,
                stock-deducted part of its lifecycle
        """
        existing = await self.invoice_repo.get_invoice_by_order(order_id)
        if existing is not None:
            logger.debug(
                "Invoice already exists, returning it",
                extra={
                    "order_id": order_id,
                    "invoice_number": existing.invoice_number,
                },
            )
            return existing  # type: ignore[no-any-return]

        order = await self.order_repo.get_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if order.status not in STOCK_DEDUCTED_STATES:
            raise PreconditionFailed(
                f"Order {order.order_number} is {order.status.value}; "
                "invoices are issued once payment is confirmed"
            )

        intra_state = is_intra_state(
            order.shipping_address.state, self.config.seller_state
        )
        products = await self._load_products(order)
        items = self._build_items(order, products, intra_state)

        total_cgst = sum(i.cgst for i in items)
        total_sgst = sum(i.sgst for i in items)
        total_igst = sum(i.igst for i in items)
        total_tax = total_cgst + total_sgst + total_igst
        now = self.clock()

        invoice_id = await self.invoice_repo.generate_invoice_id()
        invoice: Optional[Invoice] = None
        for attempt in range(NUMBER_ATTEMPTS):
            number = await self.invoice_repo.generate_invoice_number(
                now.date()
            )
            invoice = Invoice(
                invoice_id=invoice_id,
                invoice_number=number,
                order_id=order.order_id,
                order_number=order.order_number,
                user_id=order.user_id,
                invoice_date=now,
                billing_address=order.shipping_address,
                shipping_address=order.shipping_address,
                items=items,
                subtotal=order.subtotal,
                total_cgst=total_cgst,
                total_sgst=total_sgst,
                total_igst=total_igst,
                total_tax=total_tax,
                grand_total=order.subtotal + total_tax,
                is_intra_state=intra_state,
                seller_state=self.config.seller_state,
                payment_mode=order.payment.mode,
                created_at=now,
                updated_at=now,
            )
            try:
                await self.invoice_repo.create_invoice(invoice)
                break
            except NumberCollision:
                logger.info(
                    "Invoice number taken, deriving a new one",
                    extra={"invoice_number": number, "attempt": attempt + 1},
                )
            except DuplicateInvoice:
                # a concurrent generate won; hand back its invoice
                winner = await self.invoice_repo.get_invoice_by_order(
                    order_id
                )
                if winner is None:
                    raise
                return winner  # type: ignore[no-any-return]
        else:
            raise NumberCollision(
                f"Could not allocate an invoice number for {order_id}"
            )

        logger.info(
            "Invoice generated",
            extra={
                "order_id": order.order_id,
                "invoice_id": invoice.invoice_id,
                "invoice_number": invoice.invoice_number,
                "grand_total": invoice.grand_total,
                "is_intra_state": intra_state,
            },
        )

        await self._request_render(invoice)
        return invoice

    async def _request_render(self, invoice: Invoice) -> None:
        if self.render_scheduler is None:
            return
        try:
            await self.render_scheduler.schedule_render(invoice.invoice_id)
        except Exception as e:
            logger.error(
                "Invoice rendering could not be started",
                extra={
                    "invoice_id": invoice.invoice_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )


class InvoiceDocumentPipeline(InvoiceRenderScheduler):
    """
    Renders an invoice and stores the document.

    Every run produces a new object name; the previous document is deleted
    after the invoice points at the new one. In-process, ``schedule_render``
    renders immediately. Under Temporal the same class runs inside
    InvoiceRenderWorkflow with activity proxies for its collaborators.
    """

    def __init__(
        self,
        invoice_repo: InvoiceRepository,
        renderer: InvoiceRenderer,
        file_storage: FileStorageRepository,
        config: StoreConfig,
        clock: Clock = utc_now,
    ) -> None:
        self.invoice_repo = ensure_invoice_repository(invoice_repo)
        self.renderer = ensure_invoice_renderer(renderer)
        self.file_storage = ensure_file_storage_repository(file_storage)
        self.config = config
        self.clock = clock

    async def schedule_render(self, invoice_id: str) -> None:
        await self.render(invoice_id)

    async def render(self, invoice_id: str) -> Invoice:
        invoice = await self.invoice_repo.get_invoice(invoice_id)
        if invoice is None:
            raise InvoiceNotFound(invoice_id)

        document = await self.renderer.render_invoice(invoice)
        now = self.clock()
        filename = (
            f"{invoice.invoice_number}-{now.strftime('%Y%m%d%H%M%S')}"
            f"{PurePosixPath(document.filename).suffix}"
        )
        url = await self.file_storage.store(
            document.content.encode("utf-8"),
            document.content_type,
            self.config.invoice_folder,
            filename,
        )

        previous_url = invoice.document_url
        invoice.document_url = url
        invoice.status = "RENDERED"
        invoice.updated_at = now
        await self.invoice_repo.save_invoice(invoice)

        if previous_url and previous_url != url:
            try:
                await self.file_storage.delete(previous_url)
            except Exception as e:
                logger.warning(
                    "Could not delete previous invoice document",
                    extra={
                        "invoice_id": invoice_id,
                        "url": previous_url,
                        "error_type": type(e).__name__,
                    },
                )

        logger.info(
            "Invoice document rendered",
            extra={"invoice_id": invoice_id, "document_url": url},
        )
        return invoice  # type: ignore[no-any-return]


class GetInvoiceUseCase:
    """Invoice lookups with buyer ownership checks."""

    def __init__(self, invoice_repo: InvoiceRepository) -> None:
        self.invoice_repo = ensure_invoice_repository(invoice_repo)

    @staticmethod
    def _check_access(invoice: Invoice, actor: Actor) -> None:
        if actor.is_admin or actor.role == "system":
            return
        if invoice.user_id != actor.user_id:
            raise AccessDenied("Invoice belongs to another user")

    async def get_invoice(self, invoice_id: str, actor: Actor) -> Invoice:
        invoice = await self.invoice_repo.get_invoice(invoice_id)
        if invoice is None:
            raise InvoiceNotFound(invoice_id)
        self._check_access(invoice, actor)
        return invoice  # type: ignore[no-any-return]

    async def get_invoice_for_order(
        self, order_id: str, actor: Actor
    ) -> Invoice:
        invoice = await self.invoice_repo.get_invoice_by_order(order_id)
        if invoice is None:
            raise InvoiceNotFound(f"order {order_id}")
        self._check_access(invoice, actor)
        return invoice  # type: ignore[no-any-return]

    async def list_invoices(self, actor: Actor) -> List[Invoice]:
        user_id = None if actor.is_admin else actor.user_id
        return await self.invoice_repo.list_invoices(user_id)  # type: ignore[no-any-return]
