"""
Temporal workflows for the order core.

Workflows run the same use case classes as the API, with activity
proxies standing in for the repositories, so all I/O happens in
activities and the workflow code stays deterministic.
"""

import logging

from temporalio import workflow

from .config import StoreConfig
from .domain import SweepResult
from .repos.temporal.proxies.invoice import (
    WorkflowInvoiceRendererProxy,
    WorkflowInvoiceRepositoryProxy,
)
from .repos.temporal.proxies.order import WorkflowOrderRepositoryProxy
from util.repos.temporal.proxies.file_storage import (
    WorkflowFileStorageRepositoryProxy,
)

logger = logging.getLogger(__name__)

RESERVATION_SWEEP_INTERVAL_MINUTES = 5


@workflow.defn
class ReservationSweepWorkflow:
    """
    Releases expired stock reservations.

    Started by a Temporal schedule every few minutes; each run is a single
    pass over the orders whose reservation has lapsed.
    """

    def __init__(self) -> None:
        self.current_step = "initialized"

    @workflow.query
    def get_current_step(self) -> str:
        return self.current_step

    @workflow.run
    async def run(self) -> SweepResult:
        # Import use case at run time to allow for patching in tests
        from storefront.usecase import ReservationSweeper

        self.current_step = "sweeping"
        workflow.logger.info("Starting ReservationSweepWorkflow")

        sweeper = ReservationSweeper(WorkflowOrderRepositoryProxy())
        result = await sweeper.sweep(workflow.now())

        self.current_step = "completed"
        workflow.logger.info(
            "ReservationSweepWorkflow completed",
            extra={
                "examined": result.examined,
                "released": result.released,
                "conflicts": result.conflicts,
            },
        )
        return result


@workflow.defn
class InvoiceRenderWorkflow:
    """
    Renders an invoice document and stores it.

    Each collaborator call is an activity with its own retry policy, so a
    storage outage delays the document without touching the invoice
    record, which already exists when this workflow starts.
    """

    def __init__(self) -> None:
        self.current_step = "initialized"

    @workflow.query
    def get_current_step(self) -> str:
        return self.current_step

    @workflow.run
    async def run(
        self, invoice_id: str, invoice_folder: str = "invoices"
    ) -> str:
        """
        Args:
            invoice_id: Invoice to render
            invoice_folder: Storage folder for the document

        Returns:
            URL of the stored document
        """
        from storefront.invoicing import InvoiceDocumentPipeline

        self.current_step = "rendering"
        workflow.logger.info(
            "Starting InvoiceRenderWorkflow",
            extra={"invoice_id": invoice_id},
        )

        pipeline = InvoiceDocumentPipeline(
            invoice_repo=WorkflowInvoiceRepositoryProxy(),
            renderer=WorkflowInvoiceRendererProxy(),
            file_storage=WorkflowFileStorageRepositoryProxy(),
            config=StoreConfig(invoice_folder=invoice_folder),
            clock=workflow.now,
        )
        invoice = await pipeline.render(invoice_id)

        self.current_step = "completed"
        workflow.logger.info(
            "InvoiceRenderWorkflow completed",
            extra={
                "invoice_id": invoice_id,
                "document_url": invoice.document_url,
            },
        )
        return invoice.document_url or ""
