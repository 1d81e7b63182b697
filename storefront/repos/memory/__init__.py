"""
In-memory repository implementations.

Used by the test-suite and by ``STOREFRONT_BACKEND=memory`` local runs.
"""

from .catalog import MemoryCatalogRepository
from .invoice import MemoryInvoiceRepository
from .notification import MemoryNotificationService
from .order import MemoryOrderRepository

__all__ = [
    "MemoryCatalogRepository",
    "MemoryInvoiceRepository",
    "MemoryNotificationService",
    "MemoryOrderRepository",
]
