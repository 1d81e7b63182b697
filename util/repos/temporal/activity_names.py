"""
Activity name bases for shared infrastructure repositories.

Kept apart from the activity classes so workflow proxies can import the
names without pulling the Minio client into the workflow sandbox.
"""

FILE_STORAGE_ACTIVITY_BASE = "util.file_storage.minio"

__all__ = ["FILE_STORAGE_ACTIVITY_BASE"]
