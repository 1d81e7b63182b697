"""
Shared fixtures: in-memory repositories, a fake gateway server behind
``httpx.MockTransport`` and a fully wired OrderOrchestrator.
"""

from decimal import Decimal

import httpx
import pytest

from storefront.config import StoreConfig
from storefront.invoicing import InvoiceDocumentPipeline, InvoiceGenerator
from storefront.repos.http.payment_gateway import HttpPaymentGateway
from storefront.repos.jinja.invoice_renderer import JinjaInvoiceRenderer
from storefront.repos.memory import (
    MemoryCatalogRepository,
    MemoryInvoiceRepository,
    MemoryNotificationService,
    MemoryOrderRepository,
)
from storefront.tests.factories import ProductFactory, ProductVariantFactory
from storefront.tests.fakes import (
    GATEWAY_URL,
    KEY_ID,
    KEY_SECRET,
    FakeClock,
    FakeGatewayServer,
)
from storefront.usecase import OrderOrchestrator
from util.repos.memory.file_storage import MemoryFileStorageRepository


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> StoreConfig:
    return StoreConfig(
        seller_state="Gujarat",
        default_tax_rate=Decimal("18"),
        cod_partial_percentage=Decimal("30"),
        reservation_timeout_minutes=15,
        gateway_base_url=GATEWAY_URL,
        gateway_key_id=KEY_ID,
        gateway_key_secret=KEY_SECRET,
    )


@pytest.fixture
def order_repo() -> MemoryOrderRepository:
    return MemoryOrderRepository()


@pytest.fixture
def invoice_repo() -> MemoryInvoiceRepository:
    return MemoryInvoiceRepository()


@pytest.fixture
def notifications() -> MemoryNotificationService:
    return MemoryNotificationService()


@pytest.fixture
def file_storage() -> MemoryFileStorageRepository:
    return MemoryFileStorageRepository()


@pytest.fixture
def catalog_repo() -> MemoryCatalogRepository:
    """
    Catalog seeded with:
    - prod-tee: 500.00, 12% GST, 5 in stock
    - prod-mug: 250.00, no rate (store default), 2 in stock
    - prod-shoe: variants var-8 (1 in stock) and var-9 (sold out)
    - prod-old: inactive
    """
    repo = MemoryCatalogRepository()
    repo.add_product(ProductFactory(product_id="prod-tee"))
    repo.add_product(
        ProductFactory(
            product_id="prod-mug",
            name="Steel Mug",
            sale_price=25000,
            mrp=None,
            stock=2,
            hsn_code="7323",
            tax_rate=None,
        )
    )
    repo.add_product(
        ProductFactory(
            product_id="prod-shoe",
            name="Runner",
            sale_price=300000,
            stock=0,
            hsn_code="6404",
            tax_rate=Decimal("18"),
            has_variants=True,
            variants=[
                ProductVariantFactory(variant_id="var-8", stock=1),
                ProductVariantFactory(
                    variant_id="var-9", name="Size 9", stock=0
                ),
            ],
        )
    )
    repo.add_product(ProductFactory(product_id="prod-old", is_active=False))
    return repo


@pytest.fixture
def gateway_server() -> FakeGatewayServer:
    return FakeGatewayServer()


@pytest.fixture
def gateway(gateway_server: FakeGatewayServer) -> HttpPaymentGateway:
    return HttpPaymentGateway(
        base_url=GATEWAY_URL,
        key_id=KEY_ID,
        key_secret=KEY_SECRET,
        backoff_base=0,
        transport=httpx.MockTransport(gateway_server),
    )


@pytest.fixture
def document_pipeline(
    invoice_repo: MemoryInvoiceRepository,
    file_storage: MemoryFileStorageRepository,
    config: StoreConfig,
    clock: FakeClock,
) -> InvoiceDocumentPipeline:
    return InvoiceDocumentPipeline(
        invoice_repo=invoice_repo,
        renderer=JinjaInvoiceRenderer(),
        file_storage=file_storage,
        config=config,
        clock=clock,
    )


@pytest.fixture
def invoice_generator(
    order_repo: MemoryOrderRepository,
    catalog_repo: MemoryCatalogRepository,
    invoice_repo: MemoryInvoiceRepository,
    config: StoreConfig,
    document_pipeline: InvoiceDocumentPipeline,
    clock: FakeClock,
) -> InvoiceGenerator:
    return InvoiceGenerator(
        order_repo=order_repo,
        catalog_repo=catalog_repo,
        invoice_repo=invoice_repo,
        config=config,
        render_scheduler=document_pipeline,
        clock=clock,
    )


@pytest.fixture
def orchestrator(
    order_repo: MemoryOrderRepository,
    catalog_repo: MemoryCatalogRepository,
    gateway: HttpPaymentGateway,
    notifications: MemoryNotificationService,
    config: StoreConfig,
    invoice_generator: InvoiceGenerator,
    clock: FakeClock,
) -> OrderOrchestrator:
    return OrderOrchestrator(
        order_repo=order_repo,
        catalog_repo=catalog_repo,
        payment_gateway=gateway,
        notification_service=notifications,
        config=config,
        invoice_generator=invoice_generator,
        clock=clock,
    )
