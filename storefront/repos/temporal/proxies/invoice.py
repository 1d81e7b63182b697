from storefront.errors import InvoiceNotFound
from storefront.repositories import InvoiceRenderer, InvoiceRepository
from util.repos.temporal.decorators import temporal_workflow_proxy

from ..activity_names import (
    INVOICE_RENDERER_ACTIVITY_BASE,
    INVOICE_REPOSITORY_ACTIVITY_BASE,
)


@temporal_workflow_proxy(
    INVOICE_REPOSITORY_ACTIVITY_BASE,
    default_timeout_seconds=10,
    retry_methods=[
        "get_invoice",
        "get_invoice_by_order",
        "list_invoices",
        "save_invoice",
    ],
    non_retryable_errors=["DuplicateInvoice", "NumberCollision"],
    raise_as={"InvoiceNotFound": InvoiceNotFound},
)
class WorkflowInvoiceRepositoryProxy(InvoiceRepository):
    """Workflow implementation of InvoiceRepository."""

    pass


@temporal_workflow_proxy(
    INVOICE_RENDERER_ACTIVITY_BASE,
    default_timeout_seconds=30,
    retry_methods=["render_invoice"],
)
class WorkflowInvoiceRendererProxy(InvoiceRenderer):
    """Workflow implementation of InvoiceRenderer."""

    pass
