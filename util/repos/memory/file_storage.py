"""
Memory implementation of FileStorageRepository, used by tests and local
runs without MinIO.
"""

import logging
from typing import Dict, Tuple

from util.repositories import FileStorageRepository

logger = logging.getLogger(__name__)


class MemoryFileStorageRepository(FileStorageRepository):
    def __init__(self, base_url: str = "memory://documents") -> None:
        self.base_url = base_url.rstrip("/")
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        logger.debug("Initializing MemoryFileStorageRepository")

    async def store(
        self, data: bytes, content_type: str, folder: str, filename: str
    ) -> str:
        url = f"{self.base_url}/{folder}/{filename}"
        self.objects[url] = (data, content_type)
        logger.debug(
            "Stored document in memory",
            extra={"url": url, "size_bytes": len(data)},
        )
        return url

    async def delete(self, url: str) -> None:
        self.objects.pop(url, None)
