"""
Temporal activity wrapper for the Minio document store. Imported only by
the worker.
"""

from util.repos.minio.file_storage import MinioFileStorageRepository
from util.repos.temporal.activity_names import FILE_STORAGE_ACTIVITY_BASE
from util.repos.temporal.decorators import temporal_activity_registration


@temporal_activity_registration(FILE_STORAGE_ACTIVITY_BASE)
class TemporalMinioFileStorageRepository(MinioFileStorageRepository):
    """Temporal activity wrapper for MinioFileStorageRepository."""

    pass
