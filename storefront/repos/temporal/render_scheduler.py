"""
InvoiceRenderScheduler that hands rendering to a Temporal workflow.
"""

import logging

from temporalio.client import Client
from temporalio.exceptions import WorkflowAlreadyStartedError

from storefront.repositories import InvoiceRenderScheduler

logger = logging.getLogger(__name__)


class TemporalInvoiceRenderScheduler(InvoiceRenderScheduler):
    """Starts InvoiceRenderWorkflow and returns without waiting for it."""

    def __init__(
        self,
        client: Client,
        task_queue: str = "storefront-task-queue",
        invoice_folder: str = "invoices",
    ) -> None:
        self.client = client
        self.task_queue = task_queue
        self.invoice_folder = invoice_folder

    async def schedule_render(self, invoice_id: str) -> None:
        workflow_id = f"invoice-render-{invoice_id}"
        try:
            await self.client.start_workflow(
                "InvoiceRenderWorkflow",
                args=[invoice_id, self.invoice_folder],
                id=workflow_id,
                task_queue=self.task_queue,
            )
        except WorkflowAlreadyStartedError:
            logger.info(
                "Invoice render already in progress",
                extra={"invoice_id": invoice_id, "workflow_id": workflow_id},
            )
            return
        logger.info(
            "Invoice render workflow started",
            extra={"invoice_id": invoice_id, "workflow_id": workflow_id},
        )
