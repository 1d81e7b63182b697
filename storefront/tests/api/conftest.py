"""
API test fixtures: the real application with the order core wired to the
in-memory fixtures from the parent conftest.
"""

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from storefront.api.app import app
from storefront.api.dependencies import (
    get_invoice_use_case,
    get_order_orchestrator,
    get_render_scheduler,
)
from storefront.invoicing import GetInvoiceUseCase, InvoiceDocumentPipeline
from storefront.repos.memory import MemoryInvoiceRepository
from storefront.usecase import OrderOrchestrator


@pytest.fixture
def client(
    orchestrator: OrderOrchestrator,
    invoice_repo: MemoryInvoiceRepository,
    document_pipeline: InvoiceDocumentPipeline,
) -> Generator[TestClient, None, None]:
    """Create a test client with the order core on memory repositories."""
    app.dependency_overrides[get_order_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_invoice_use_case] = (
        lambda: GetInvoiceUseCase(invoice_repo)
    )
    app.dependency_overrides[get_render_scheduler] = lambda: document_pipeline

    with TestClient(app) as test_client:
        yield test_client

    # Clean up the overrides after the test
    app.dependency_overrides.clear()
