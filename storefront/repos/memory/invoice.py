"""
Memory implementation of InvoiceRepository.
"""

import logging
import uuid
from datetime import date
from typing import Dict, List, Optional

from storefront.domain import Invoice
from storefront.errors import DuplicateInvoice, InvoiceNotFound, NumberCollision
from storefront.numbering import INVOICE_PREFIX, next_number
from storefront.repositories import InvoiceRepository
from .base import MemoryRepositoryMixin

logger = logging.getLogger(__name__)


class MemoryInvoiceRepository(
    InvoiceRepository, MemoryRepositoryMixin[Invoice]
):
    def __init__(self) -> None:
        self.logger = logger
        self.entity_name = "Invoice"
        self.storage_dict: Dict[str, Invoice] = {}

    async def generate_invoice_id(self) -> str:
        return str(uuid.uuid4())

    async def generate_invoice_number(self, day: date) -> str:
        return next_number(
            INVOICE_PREFIX,
            day,
            (i.invoice_number for i in self.storage_dict.values()),
        )

    async def create_invoice(self, invoice: Invoice) -> None:
        for existing in self.storage_dict.values():
            if existing.order_id == invoice.order_id:
                raise DuplicateInvoice(invoice.order_id)
            if existing.invoice_number == invoice.invoice_number:
                raise NumberCollision(
                    f"Invoice number {invoice.invoice_number} is taken"
                )
        self.save_entity(invoice.invoice_id, invoice)

    async def save_invoice(self, invoice: Invoice) -> None:
        if invoice.invoice_id not in self.storage_dict:
            raise InvoiceNotFound(invoice.invoice_id)
        self.save_entity(invoice.invoice_id, invoice)

    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        return self.get_entity(invoice_id)

    async def get_invoice_by_order(self, order_id: str) -> Optional[Invoice]:
        for invoice in self.storage_dict.values():
            if invoice.order_id == order_id:
                return invoice.model_copy(deep=True)
        return None

    async def list_invoices(self, user_id: Optional[str]) -> List[Invoice]:
        invoices = [
            i
            for i in self.all_entities()
            if user_id is None or i.user_id == user_id
        ]
        invoices.sort(key=lambda i: i.invoice_date.timestamp(), reverse=True)
        return invoices
