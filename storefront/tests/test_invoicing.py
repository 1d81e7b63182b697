"""
Tests for InvoiceGenerator, InvoiceDocumentPipeline and GetInvoiceUseCase.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from storefront.config import StoreConfig
from storefront.domain import Actor, Invoice, Order, OrderStatus
from storefront.errors import (
    AccessDenied,
    InvoiceNotFound,
    OrderNotFound,
    PreconditionFailed,
)
from storefront.invoicing import (
    GetInvoiceUseCase,
    InvoiceDocumentPipeline,
    InvoiceGenerator,
)
from storefront.repos.memory import (
    MemoryCatalogRepository,
    MemoryInvoiceRepository,
    MemoryOrderRepository,
)
from storefront.repositories import InvoiceRenderScheduler
from storefront.tests.factories import (
    OrderFactory,
    OrderItemFactory,
    ProductFactory,
    ShippingAddressFactory,
)
from storefront.tests.fakes import FakeClock
from util.repos.memory.file_storage import MemoryFileStorageRepository


def paid_order(state: str = "Gujarat", **kwargs) -> Order:
    items = kwargs.pop(
        "items",
        [
            OrderItemFactory(product_id="prod-tee", quantity=2),
            OrderItemFactory(
                product_id="prod-mug", name="Steel Mug", price=25000
            ),
        ],
    )
    return OrderFactory(
        items=items,
        shipping_address=ShippingAddressFactory(state=state),
        status=OrderStatus.PAID,
        **kwargs,
    )


@pytest.fixture
def generator(
    order_repo: MemoryOrderRepository,
    catalog_repo: MemoryCatalogRepository,
    invoice_repo: MemoryInvoiceRepository,
    config: StoreConfig,
    clock: FakeClock,
) -> InvoiceGenerator:
    # no render scheduler: these tests look at the record only
    return InvoiceGenerator(
        order_repo=order_repo,
        catalog_repo=catalog_repo,
        invoice_repo=invoice_repo,
        config=config,
        clock=clock,
    )


class TestInvoiceGenerator:
    @pytest.mark.asyncio
    async def test_intra_state_invoice(
        self,
        generator: InvoiceGenerator,
        order_repo: MemoryOrderRepository,
        invoice_repo: MemoryInvoiceRepository,
        clock: FakeClock,
    ) -> None:
        order = paid_order()
        await order_repo.create_order(order)

        invoice = await generator.generate(order.order_id)

        assert invoice.invoice_number == "INV-20240315-001"
        assert invoice.order_number == order.order_number
        assert invoice.invoice_date == clock.now
        assert invoice.is_intra_state
        assert invoice.seller_state == "Gujarat"
        assert invoice.status == "GENERATED"

        tee, mug = invoice.items
        assert (tee.gst_rate, tee.cgst, tee.sgst, tee.igst) == (
            Decimal("12"),
            6000,
            6000,
            0,
        )
        assert tee.hsn_code == "6109"
        # the mug has no rate of its own
        assert (mug.gst_rate, mug.cgst, mug.sgst) == (Decimal("18"), 2250, 2250)

        assert invoice.subtotal == 125000
        assert invoice.total_cgst == 8250
        assert invoice.total_sgst == 8250
        assert invoice.total_igst == 0
        assert invoice.total_tax == 16500
        assert invoice.grand_total == 141500
        assert await invoice_repo.get_invoice(invoice.invoice_id) == invoice

    @pytest.mark.asyncio
    async def test_inter_state_invoice_uses_igst(
        self, generator: InvoiceGenerator, order_repo: MemoryOrderRepository
    ) -> None:
        order = paid_order(state="Maharashtra")
        await order_repo.create_order(order)

        invoice = await generator.generate(order.order_id)

        assert not invoice.is_intra_state
        assert [i.igst for i in invoice.items] == [12000, 4500]
        assert invoice.total_cgst == invoice.total_sgst == 0
        assert invoice.total_igst == 16500
        assert invoice.grand_total == 141500

    @pytest.mark.asyncio
    async def test_zero_product_rate_falls_back_to_default(
        self,
        generator: InvoiceGenerator,
        order_repo: MemoryOrderRepository,
        catalog_repo: MemoryCatalogRepository,
    ) -> None:
        catalog_repo.add_product(
            ProductFactory(product_id="prod-book", tax_rate=Decimal("0"))
        )
        order = paid_order(items=[OrderItemFactory(product_id="prod-book")])
        await order_repo.create_order(order)

        invoice = await generator.generate(order.order_id)

        assert invoice.items[0].gst_rate == Decimal("18")
        assert invoice.total_tax == 9000

    @pytest.mark.asyncio
    async def test_product_removed_from_catalog(
        self, generator: InvoiceGenerator, order_repo: MemoryOrderRepository
    ) -> None:
        order = paid_order(items=[OrderItemFactory(product_id="gone")])
        await order_repo.create_order(order)

        invoice = await generator.generate(order.order_id)

        assert invoice.items[0].hsn_code is None
        assert invoice.items[0].gst_rate == Decimal("18")

    @pytest.mark.asyncio
    async def test_generate_is_idempotent(
        self,
        generator: InvoiceGenerator,
        order_repo: MemoryOrderRepository,
        invoice_repo: MemoryInvoiceRepository,
        clock: FakeClock,
    ) -> None:
        order = paid_order()
        await order_repo.create_order(order)

        first = await generator.generate(order.order_id)
        clock.advance(days=1)
        second = await generator.generate(order.order_id)

        assert second == first
        assert len(await invoice_repo.list_invoices(None)) == 1

    @pytest.mark.asyncio
    async def test_invoice_numbers_are_sequential(
        self, generator: InvoiceGenerator, order_repo: MemoryOrderRepository
    ) -> None:
        first, second = paid_order(), paid_order()
        await order_repo.create_order(first)
        await order_repo.create_order(second)

        a = await generator.generate(first.order_id)
        b = await generator.generate(second.order_id)

        assert (a.invoice_number, b.invoice_number) == (
            "INV-20240315-001",
            "INV-20240315-002",
        )

    @pytest.mark.asyncio
    async def test_unpaid_order_is_refused(
        self, generator: InvoiceGenerator, order_repo: MemoryOrderRepository
    ) -> None:
        order = OrderFactory()
        await order_repo.create_order(order)

        with pytest.raises(PreconditionFailed):
            await generator.generate(order.order_id)

    @pytest.mark.asyncio
    async def test_unknown_order(self, generator: InvoiceGenerator) -> None:
        with pytest.raises(OrderNotFound):
            await generator.generate("missing")

    @pytest.mark.asyncio
    async def test_concurrent_generate_returns_winner(
        self,
        order_repo: MemoryOrderRepository,
        catalog_repo: MemoryCatalogRepository,
        config: StoreConfig,
        clock: FakeClock,
    ) -> None:
        class RacingInvoiceRepository(MemoryInvoiceRepository):
            """Another worker inserts its invoice just before ours."""

            async def create_invoice(self, invoice: Invoice) -> None:
                if not self.storage_dict:
                    winner = invoice.model_copy(
                        update={
                            "invoice_id": "winner",
                            "invoice_number": "INV-20240315-900",
                        }
                    )
                    await super().create_invoice(winner)
                await super().create_invoice(invoice)

        invoice_repo = RacingInvoiceRepository()
        generator = InvoiceGenerator(
            order_repo, catalog_repo, invoice_repo, config, clock=clock
        )
        order = paid_order()
        await order_repo.create_order(order)

        invoice = await generator.generate(order.order_id)

        assert invoice.invoice_id == "winner"
        assert len(await invoice_repo.list_invoices(None)) == 1

    @pytest.mark.asyncio
    async def test_render_failure_keeps_invoice(
        self,
        order_repo: MemoryOrderRepository,
        catalog_repo: MemoryCatalogRepository,
        invoice_repo: MemoryInvoiceRepository,
        config: StoreConfig,
        clock: FakeClock,
    ) -> None:
        scheduler = AsyncMock(spec=InvoiceRenderScheduler)
        scheduler.schedule_render.side_effect = RuntimeError("storage down")
        generator = InvoiceGenerator(
            order_repo,
            catalog_repo,
            invoice_repo,
            config,
            render_scheduler=scheduler,
            clock=clock,
        )
        order = paid_order()
        await order_repo.create_order(order)

        invoice = await generator.generate(order.order_id)

        scheduler.schedule_render.assert_awaited_once_with(invoice.invoice_id)
        stored = await invoice_repo.get_invoice(invoice.invoice_id)
        assert stored.status == "GENERATED"
        assert stored.document_url is None


class TestInvoiceDocumentPipeline:
    @pytest.mark.asyncio
    async def test_render_stores_document(
        self,
        invoice_generator: InvoiceGenerator,
        order_repo: MemoryOrderRepository,
        invoice_repo: MemoryInvoiceRepository,
        file_storage: MemoryFileStorageRepository,
    ) -> None:
        order = paid_order()
        await order_repo.create_order(order)

        invoice = await invoice_generator.generate(order.order_id)

        stored = await invoice_repo.get_invoice(invoice.invoice_id)
        assert stored.status == "RENDERED"
        assert stored.document_url == (
            "memory://documents/invoices/INV-20240315-001-20240315100000.html"
        )
        content, content_type = file_storage.objects[stored.document_url]
        assert content_type == "text/html"
        assert b"INV-20240315-001" in content

    @pytest.mark.asyncio
    async def test_re_render_replaces_previous_document(
        self,
        invoice_generator: InvoiceGenerator,
        document_pipeline: InvoiceDocumentPipeline,
        order_repo: MemoryOrderRepository,
        file_storage: MemoryFileStorageRepository,
        clock: FakeClock,
    ) -> None:
        order = paid_order()
        await order_repo.create_order(order)
        invoice = await invoice_generator.generate(order.order_id)
        first_url = list(file_storage.objects)[0]
        clock.advance(minutes=1)

        rerendered = await document_pipeline.render(invoice.invoice_id)

        assert rerendered.document_url != first_url
        assert list(file_storage.objects) == [rerendered.document_url]
        assert rerendered.updated_at == clock.now

    @pytest.mark.asyncio
    async def test_unknown_invoice(
        self, document_pipeline: InvoiceDocumentPipeline
    ) -> None:
        with pytest.raises(InvoiceNotFound):
            await document_pipeline.render("missing")


class TestGetInvoiceUseCase:
    @pytest.fixture
    async def invoice(
        self, generator: InvoiceGenerator, order_repo: MemoryOrderRepository
    ) -> Invoice:
        order = paid_order()
        await order_repo.create_order(order)
        return await generator.generate(order.order_id)

    @pytest.mark.asyncio
    async def test_owner_and_admin_can_read(
        self, invoice_repo: MemoryInvoiceRepository, invoice: Invoice
    ) -> None:
        use_case = GetInvoiceUseCase(invoice_repo)

        owner = await use_case.get_invoice(
            invoice.invoice_id, Actor(user_id="buyer-1")
        )
        by_order = await use_case.get_invoice_for_order(
            invoice.order_id, Actor(user_id="admin", role="admin")
        )

        assert owner == by_order == invoice

    @pytest.mark.asyncio
    async def test_other_buyer_is_denied(
        self, invoice_repo: MemoryInvoiceRepository, invoice: Invoice
    ) -> None:
        use_case = GetInvoiceUseCase(invoice_repo)

        with pytest.raises(AccessDenied):
            await use_case.get_invoice(
                invoice.invoice_id, Actor(user_id="buyer-2")
            )

    @pytest.mark.asyncio
    async def test_missing_invoice_for_order(
        self, invoice_repo: MemoryInvoiceRepository
    ) -> None:
        with pytest.raises(InvoiceNotFound):
            await GetInvoiceUseCase(invoice_repo).get_invoice_for_order(
                "order-x", Actor(user_id="buyer-1")
            )

    @pytest.mark.asyncio
    async def test_list_is_scoped_to_buyer(
        self, invoice_repo: MemoryInvoiceRepository, invoice: Invoice
    ) -> None:
        use_case = GetInvoiceUseCase(invoice_repo)

        assert await use_case.list_invoices(Actor(user_id="buyer-2")) == []
        assert await use_case.list_invoices(Actor(user_id="buyer-1")) == [
            invoice
        ]
        assert len(
            await use_case.list_invoices(Actor(user_id="a", role="admin"))
        ) == 1
