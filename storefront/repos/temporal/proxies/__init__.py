"""
Workflow-side proxies for the order-core repositories.

These classes are used *inside* Temporal workflows; every protocol method
becomes an activity call, keeping the workflow deterministic.
"""

from .invoice import (
    WorkflowInvoiceRendererProxy,
    WorkflowInvoiceRepositoryProxy,
)
from .order import WorkflowOrderRepositoryProxy

__all__ = [
    "WorkflowInvoiceRendererProxy",
    "WorkflowInvoiceRepositoryProxy",
    "WorkflowOrderRepositoryProxy",
]
