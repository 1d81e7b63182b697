"""
Workflow-side proxy for FileStorageRepository.
Used *inside* Temporal workflows; every call becomes an activity.
"""

from util.repos.temporal.activity_names import FILE_STORAGE_ACTIVITY_BASE
from util.repos.temporal.decorators import temporal_workflow_proxy
from util.repositories import FileStorageRepository


@temporal_workflow_proxy(
    FILE_STORAGE_ACTIVITY_BASE,
    default_timeout_seconds=30,
    retry_methods=["store", "delete"],
)
class WorkflowFileStorageRepositoryProxy(FileStorageRepository):
    """Workflow implementation of FileStorageRepository."""

    pass
