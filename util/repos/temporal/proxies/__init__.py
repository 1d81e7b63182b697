from .file_storage import WorkflowFileStorageRepositoryProxy

__all__ = ["WorkflowFileStorageRepositoryProxy"]
