"""
Temporal activity wrappers for the order-core repositories. Imported only
by the worker.
"""

from storefront.repos.jinja.invoice_renderer import JinjaInvoiceRenderer
from storefront.repos.postgresql.invoice import PostgreSQLInvoiceRepository
from storefront.repos.postgresql.order import PostgreSQLOrderRepository
from util.repos.temporal.decorators import temporal_activity_registration

from .activity_names import (
    INVOICE_RENDERER_ACTIVITY_BASE,
    INVOICE_REPOSITORY_ACTIVITY_BASE,
    ORDER_REPOSITORY_ACTIVITY_BASE,
)


@temporal_activity_registration(ORDER_REPOSITORY_ACTIVITY_BASE)
class TemporalPostgreSQLOrderRepository(PostgreSQLOrderRepository):
    """Temporal activity wrapper for PostgreSQLOrderRepository."""

    pass


@temporal_activity_registration(INVOICE_REPOSITORY_ACTIVITY_BASE)
class TemporalPostgreSQLInvoiceRepository(PostgreSQLInvoiceRepository):
    """Temporal activity wrapper for PostgreSQLInvoiceRepository."""

    pass


@temporal_activity_registration(INVOICE_RENDERER_ACTIVITY_BASE)
class TemporalJinjaInvoiceRenderer(JinjaInvoiceRenderer):
    """Temporal activity wrapper for JinjaInvoiceRenderer."""

    pass
