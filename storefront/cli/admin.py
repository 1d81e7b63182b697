"""
Operational commands for the order core.

    storefront-admin init-db
    storefront-admin sweep-reservations
    storefront-admin render-invoice INVOICE_ID [--wait]
"""

import asyncio
import logging
import os
import sys
from typing import Optional

import asyncpg
import click
from temporalio.client import Client
from temporalio.contrib.pydantic import pydantic_data_converter

from storefront.domain import utc_now
from storefront.repos.postgresql import SCHEMA_PATH, PostgreSQLOrderRepository
from storefront.usecase import ReservationSweeper
from storefront.worker import TASK_QUEUE

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "postgresql://storefront@localhost/storefront"


@click.group()
@click.option(
    "--database-url",
    default=None,
    help="PostgreSQL DSN (defaults to DATABASE_URL env var)",
)
@click.pass_context
def cli(ctx: click.Context, database_url: Optional[str]) -> None:
    """Storefront order core administration."""
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url or os.environ.get(
        "DATABASE_URL", DEFAULT_DATABASE_URL
    )


async def _init_db(dsn: str) -> None:
    conn = await asyncpg.connect(dsn)
    try:
        await conn.execute(SCHEMA_PATH.read_text())
    finally:
        await conn.close()


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the order, catalog stock and invoice tables."""
    try:
        asyncio.run(_init_db(ctx.obj["database_url"]))
    except Exception as e:
        logger.error(f"Schema setup failed: {e}", exc_info=True)
        click.echo(f"Schema setup failed: {e}", err=True)
        sys.exit(1)
    click.echo("Schema applied.")


async def _sweep(dsn: str) -> None:
    pool = await asyncpg.create_pool(dsn)
    try:
        sweeper = ReservationSweeper(PostgreSQLOrderRepository(pool))
        result = await sweeper.sweep(utc_now())
    finally:
        await pool.close()
    click.echo(
        f"Examined {result.examined}, released {result.released}, "
        f"conflicts {result.conflicts}"
    )


@cli.command("sweep-reservations")
@click.pass_context
def sweep_reservations(ctx: click.Context) -> None:
    """Release expired stock reservations once, without Temporal."""
    try:
        asyncio.run(_sweep(ctx.obj["database_url"]))
    except Exception as e:
        logger.error(f"Sweep failed: {e}", exc_info=True)
        click.echo(f"Sweep failed: {e}", err=True)
        sys.exit(1)


async def _render(
    invoice_id: str, temporal_address: str, invoice_folder: str, wait: bool
) -> None:
    client = await Client.connect(
        temporal_address,
        namespace="default",
        data_converter=pydantic_data_converter,
    )
    handle = await client.start_workflow(
        "InvoiceRenderWorkflow",
        args=[invoice_id, invoice_folder],
        id=f"invoice-render-{invoice_id}",
        task_queue=TASK_QUEUE,
    )
    click.echo(f"Workflow ID: {handle.id}")
    if wait:
        url = await handle.result()
        click.echo(f"Document stored at {url}")


@cli.command("render-invoice")
@click.argument("invoice_id")
@click.option("--wait", is_flag=True, help="Wait for the document URL")
@click.option(
    "--temporal-address",
    default=None,
    help="Temporal server address (defaults to TEMPORAL_ENDPOINT env var)",
)
def render_invoice(
    invoice_id: str, wait: bool, temporal_address: Optional[str]
) -> None:
    """Start InvoiceRenderWorkflow for INVOICE_ID."""
    if temporal_address is None:
        temporal_address = os.environ.get("TEMPORAL_ENDPOINT", "temporal:7233")
    invoice_folder = os.environ.get("INVOICE_FOLDER", "invoices")
    try:
        asyncio.run(
            _render(invoice_id, temporal_address, invoice_folder, wait)
        )
    except Exception as e:
        logger.error(f"Render failed: {e}", exc_info=True)
        click.echo(f"Render failed: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
