"""
Temporal worker for the order core.

Runs ReservationSweepWorkflow (on a schedule) and InvoiceRenderWorkflow
(started by the API after invoice generation), with the PostgreSQL, Jinja
and Minio repositories registered as activities.
"""

import asyncio
import logging
import os
from datetime import timedelta
from typing import Any, Callable, Optional, Sequence, cast

import asyncpg
from temporalio.client import (
    Client,
    Schedule,
    ScheduleActionStartWorkflow,
    ScheduleIntervalSpec,
    ScheduleSpec,
)
from temporalio.contrib.pydantic import pydantic_data_converter
from temporalio.service import RPCError
from temporalio.worker import Worker

from .config import StoreConfig
from .repos.temporal.activities import (
    TemporalJinjaInvoiceRenderer,
    TemporalPostgreSQLInvoiceRepository,
    TemporalPostgreSQLOrderRepository,
)
from .workflow import (
    RESERVATION_SWEEP_INTERVAL_MINUTES,
    InvoiceRenderWorkflow,
    ReservationSweepWorkflow,
)
from util.repos.temporal.minio_file_storage import (
    TemporalMinioFileStorageRepository,
)

logger = logging.getLogger(__name__)

TASK_QUEUE = "storefront-task-queue"
SWEEP_SCHEDULE_ID = "reservation-sweep"


def setup_logging() -> None:
    """Configure logging based on environment variables"""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        print(f"Invalid log level: {log_level}, defaulting to INFO")
        numeric_level = logging.INFO

    log_format = os.environ.get(
        "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    logging.basicConfig(
        level=numeric_level,
        format=log_format,
        force=True,  # Override any existing configuration
    )
    logger.info(
        "Logging configured",
        extra={"log_level": log_level, "numeric_level": numeric_level},
    )


async def get_temporal_client_with_retries(
    endpoint: str, attempts: int = 10, delay: int = 5
) -> Client:
    """Attempt to connect to Temporal with retries."""
    logger.debug(
        "Attempting to connect to Temporal",
        extra={
            "endpoint": endpoint,
            "max_attempts": attempts,
            "delay_seconds": delay,
        },
    )

    for attempt in range(attempts):
        try:
            client = await Client.connect(
                endpoint,
                namespace="default",
                data_converter=pydantic_data_converter,
            )
            logger.info(
                "Successfully connected to Temporal",
                extra={"endpoint": endpoint, "attempt": attempt + 1},
            )
            return client
        except RPCError as e:
            logger.warning(
                "Failed to connect to Temporal",
                extra={
                    "endpoint": endpoint,
                    "attempt": attempt + 1,
                    "max_attempts": attempts,
                    "error": str(e),
                    "retry_in_seconds": delay,
                },
            )
            if attempt + 1 == attempts:
                logger.error(
                    "All connection attempts to Temporal failed",
                    extra={"endpoint": endpoint, "total_attempts": attempts},
                )
                raise
            await asyncio.sleep(delay)

    raise RuntimeError("Unexpected exit from retry loop")


async def ensure_sweep_schedule(
    client: Client,
    task_queue: str,
    interval_minutes: int = RESERVATION_SWEEP_INTERVAL_MINUTES,
) -> None:
    """Create the periodic reservation sweep schedule if it is missing."""
    schedule = Schedule(
        action=ScheduleActionStartWorkflow(
            "ReservationSweepWorkflow",
            id="reservation-sweep",
            task_queue=task_queue,
        ),
        spec=ScheduleSpec(
            intervals=[
                ScheduleIntervalSpec(every=timedelta(minutes=interval_minutes))
            ]
        ),
    )
    try:
        await client.create_schedule(SWEEP_SCHEDULE_ID, schedule)
        logger.info(
            "Created reservation sweep schedule",
            extra={
                "schedule_id": SWEEP_SCHEDULE_ID,
                "interval_minutes": interval_minutes,
            },
        )
    except Exception as e:
        # usually the schedule exists from a previous worker start
        logger.warning(
            f"Failed to create sweep schedule: {e}",
            extra={"schedule_id": SWEEP_SCHEDULE_ID},
        )


async def run_worker(
    temporal_address: Optional[str] = None,
    task_queue: str = TASK_QUEUE,
) -> None:
    """
    Run the Temporal worker for the order core.

    Args:
        temporal_address: Address of the Temporal server
        task_queue: Task queue to poll
    """
    setup_logging()

    if temporal_address is None:
        temporal_address = os.environ.get("TEMPORAL_ENDPOINT", "temporal:7233")
    dsn = os.environ.get(
        "DATABASE_URL", "postgresql://storefront@localhost/storefront"
    )
    config = StoreConfig.from_env()

    logger.info(
        "Starting storefront worker",
        extra={"temporal_address": temporal_address, "task_queue": task_queue},
    )

    client = await get_temporal_client_with_retries(temporal_address)
    pool = await asyncpg.create_pool(dsn)

    order_repo = TemporalPostgreSQLOrderRepository(pool)
    invoice_repo = TemporalPostgreSQLInvoiceRepository(pool)
    renderer = TemporalJinjaInvoiceRenderer(
        seller_name=config.seller_name, seller_gstin=config.seller_gstin
    )
    file_storage = TemporalMinioFileStorageRepository()

    activities = [
        # Order repository (ReservationSweepWorkflow)
        order_repo.find_expired_reservations,
        order_repo.find_open_reservations,
        order_repo.get_order,
        order_repo.get_order_by_remote_order_id,
        order_repo.list_orders,
        order_repo.save_order,
        order_repo.create_order,
        order_repo.generate_order_id,
        order_repo.generate_order_number,
        # Invoice repository and renderer (InvoiceRenderWorkflow)
        invoice_repo.get_invoice,
        invoice_repo.get_invoice_by_order,
        invoice_repo.list_invoices,
        invoice_repo.save_invoice,
        invoice_repo.create_invoice,
        invoice_repo.generate_invoice_id,
        invoice_repo.generate_invoice_number,
        renderer.render_invoice,
        # Document storage
        file_storage.store,
        file_storage.delete,
    ]

    await ensure_sweep_schedule(client, task_queue)

    logger.info(
        "Creating Temporal worker",
        extra={
            "task_queue": task_queue,
            "workflow_count": 2,
            "activity_count": len(activities),
        },
    )
    worker = Worker(
        client,
        task_queue=task_queue,
        workflows=[ReservationSweepWorkflow, InvoiceRenderWorkflow],
        activities=cast(Sequence[Callable[..., Any]], activities),
    )

    try:
        logger.info("Starting worker", extra={"task_queue": task_queue})
        await worker.run()
    finally:
        await pool.close()


def main() -> None:
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
