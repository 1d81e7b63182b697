"""
Shared infrastructure protocols.

FileStorageRepository is the document-storage collaborator: it stores
rendered artifacts (invoice documents) and hands back a URL. It knows
nothing about orders or invoices.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class FileStorageRepository(Protocol):
    """Blob storage for generated documents.

    Implementation Notes:
    - ``store`` must be safe to retry: storing the same filename in the
      same folder overwrites the previous object
    - ``delete`` of a URL that no longer exists is not an error
    """

    async def store(
        self, data: bytes, content_type: str, folder: str, filename: str
    ) -> str:
        """Store ``data`` under ``folder/filename`` and return its URL."""
        ...

    async def delete(self, url: str) -> None:
        """Delete a previously stored object by URL."""
        ...
