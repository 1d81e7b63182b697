"""
Temporal repository utilities.

Decorators that expose repository protocols as Temporal activities on the
worker side and as activity-calling proxies on the workflow side.
"""

from .decorators import (
    temporal_activity_registration,
    temporal_workflow_proxy,
)

__all__ = ["temporal_activity_registration", "temporal_workflow_proxy"]
