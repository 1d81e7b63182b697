"""PostgreSQL implementations of order-core repositories."""

from pathlib import Path

from .catalog import PostgreSQLCatalogRepository
from .invoice import PostgreSQLInvoiceRepository
from .order import PostgreSQLOrderRepository

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

__all__ = [
    "PostgreSQLCatalogRepository",
    "PostgreSQLInvoiceRepository",
    "PostgreSQLOrderRepository",
    "SCHEMA_PATH",
]
