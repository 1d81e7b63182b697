"""
PostgreSQL implementation of InvoiceRepository.
"""

import logging
import uuid
from datetime import date
from typing import Any, List, Optional

from asyncpg import Pool, UniqueViolationError

from storefront.domain import Invoice
from storefront.errors import (
    ConcurrencyConflict,
    DuplicateInvoice,
    InvoiceNotFound,
    NumberCollision,
)
from storefront.numbering import INVOICE_PREFIX, day_prefix, next_number
from storefront.repositories import InvoiceRepository

logger = logging.getLogger(__name__)


class PostgreSQLInvoiceRepository(InvoiceRepository):
    """
    PostgreSQL implementation of InvoiceRepository.
    One invoice per order is enforced by a unique constraint on order_id.
    """

    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLInvoiceRepository")

    @staticmethod
    def _parse_rows(rows: List[Any]) -> List[Invoice]:
        invoices = []
        for row in rows:
            try:
                invoices.append(
                    Invoice.model_validate_json(row["invoice_data"])
                )
            except Exception as e:
                logger.warning(
                    f"Failed to parse invoice data: {e}",
                    extra={"invoice_id": row["invoice_id"]},
                )
        return invoices

    async def generate_invoice_id(self) -> str:
        return str(uuid.uuid4())

    async def generate_invoice_number(self, day: date) -> str:
        prefix = day_prefix(INVOICE_PREFIX, day)
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT invoice_number FROM invoices "
                "WHERE invoice_number LIKE $1",
                prefix + "%",
            )
        return next_number(
            INVOICE_PREFIX, day, (r["invoice_number"] for r in rows)
        )

    async def create_invoice(self, invoice: Invoice) -> None:
        query = """
            INSERT INTO invoices (
                invoice_id, invoice_number, order_id, user_id,
                invoice_date, invoice_data
            ) VALUES ($1, $2, $3, $4, $5, $6)
        """
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    query,
                    invoice.invoice_id,
                    invoice.invoice_number,
                    invoice.order_id,
                    invoice.user_id,
                    invoice.invoice_date,
                    invoice.model_dump_json(),
                )
        except UniqueViolationError as e:
            if e.constraint_name == "invoices_order_id_key":
                raise DuplicateInvoice(invoice.order_id) from e
            if e.constraint_name == "invoices_invoice_number_key":
                raise NumberCollision(
                    f"Invoice number {invoice.invoice_number} is taken"
                ) from e
            raise ConcurrencyConflict(
                f"Invoice {invoice.invoice_id} already exists"
            ) from e

        logger.info(
            "Created invoice in PostgreSQL",
            extra={
                "invoice_id": invoice.invoice_id,
                "invoice_number": invoice.invoice_number,
            },
        )

    async def save_invoice(self, invoice: Invoice) -> None:
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "UPDATE invoices SET invoice_data = $2 WHERE invoice_id = $1",
                invoice.invoice_id,
                invoice.model_dump_json(),
            )
        if result.split()[-1] == "0":
            raise InvoiceNotFound(invoice.invoice_id)

    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT invoice_id, invoice_data FROM invoices "
                "WHERE invoice_id = $1",
                invoice_id,
            )
        invoices = self._parse_rows(rows)
        return invoices[0] if invoices else None

    async def get_invoice_by_order(self, order_id: str) -> Optional[Invoice]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT invoice_id, invoice_data FROM invoices "
                "WHERE order_id = $1",
                order_id,
            )
        invoices = self._parse_rows(rows)
        return invoices[0] if invoices else None

    async def list_invoices(self, user_id: Optional[str]) -> List[Invoice]:
        async with self.pool.acquire() as conn:
            if user_id is None:
                rows = await conn.fetch(
                    "SELECT invoice_id, invoice_data FROM invoices "
                    "ORDER BY invoice_date DESC"
                )
            else:
                rows = await conn.fetch(
                    "SELECT invoice_id, invoice_data FROM invoices "
                    "WHERE user_id = $1 ORDER BY invoice_date DESC",
                    user_id,
                )
        return self._parse_rows(rows)
