"""
Activity name bases for the order core.

Shared by the activity classes (worker side) and the workflow proxies so
the two can never drift apart.
"""

ORDER_REPOSITORY_ACTIVITY_BASE = "storefront.order_repo.postgresql"
INVOICE_REPOSITORY_ACTIVITY_BASE = "storefront.invoice_repo.postgresql"
INVOICE_RENDERER_ACTIVITY_BASE = "storefront.invoice_renderer.jinja"

__all__ = [
    "ORDER_REPOSITORY_ACTIVITY_BASE",
    "INVOICE_REPOSITORY_ACTIVITY_BASE",
    "INVOICE_RENDERER_ACTIVITY_BASE",
]
