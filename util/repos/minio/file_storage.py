import io
import logging
import os
from typing import Optional
from urllib.parse import urlparse

from minio import Minio
from minio.error import S3Error

from util.repositories import FileStorageRepository

logger = logging.getLogger(__name__)


class MinioFileStorageRepository(FileStorageRepository):
    """
    Minio implementation of FileStorageRepository.
    Objects are stored as ``<folder>/<filename>`` in a single bucket and
    addressed by ``<public_base_url>/<bucket>/<object>``.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        secure: bool = False,
        bucket_name: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ):
        self._endpoint = endpoint or os.environ.get(
            "MINIO_ENDPOINT", "localhost:9000"
        )
        self._access_key = access_key or os.environ.get(
            "MINIO_ROOT_USER", "minioadmin"
        )
        self._secret_key = secret_key or os.environ.get(
            "MINIO_ROOT_PASSWORD", "minioadmin"
        )
        self._secure = secure
        self._bucket_name = bucket_name or os.environ.get(
            "MINIO_BUCKET_NAME", "storefront-documents"
        )
        scheme = "https" if secure else "http"
        self._public_base_url = (
            public_base_url
            or os.environ.get("MINIO_PUBLIC_URL")
            or f"{scheme}://{self._endpoint}"
        ).rstrip("/")

        self._client: Optional[Minio] = None
        logger.debug(
            "MinioFileStorageRepository initialized",
            extra={
                "endpoint": self._endpoint,
                "bucket_name": self._bucket_name,
            },
        )

    async def _get_client(self) -> Minio:
        """Lazily initialize and return the Minio client."""
        if self._client is None:
            logger.debug(
                "Creating new Minio client instance",
                extra={"endpoint": self._endpoint, "secure": self._secure},
            )
            self._client = Minio(
                self._endpoint,
                access_key=self._access_key,
                secret_key=self._secret_key,
                secure=self._secure,
            )
            try:
                if not self._client.bucket_exists(self._bucket_name):
                    logger.info(
                        "Minio bucket does not exist, creating now",
                        extra={"bucket_name": self._bucket_name},
                    )
                    self._client.make_bucket(self._bucket_name)
            except S3Error as e:
                logger.error(
                    f"Error checking or creating Minio bucket: {e}",
                    extra={
                        "bucket_name": self._bucket_name,
                        "error_code": e.code,
                    },
                )
                raise
        return self._client

    def _object_name_from_url(self, url: str) -> Optional[str]:
        path = urlparse(url).path.lstrip("/")
        prefix = f"{self._bucket_name}/"
        if not path.startswith(prefix):
            return None
        return path[len(prefix):]

    async def store(
        self, data: bytes, content_type: str, folder: str, filename: str
    ) -> str:
        """Upload a document to Minio and return its URL."""
        client = await self._get_client()
        object_name = f"{folder.strip('/')}/{filename}"
        logger.info(
            "Uploading document to Minio",
            extra={
                "object_name": object_name,
                "content_type": content_type,
                "size_bytes": len(data),
            },
        )
        try:
            # put_object overwrites, so retries are harmless
            client.put_object(
                self._bucket_name,
                object_name,
                io.BytesIO(data),
                len(data),
                content_type=content_type,
            )
        except S3Error as e:
            logger.error(
                f"Error uploading document to Minio: {e}",
                extra={"object_name": object_name, "error_code": e.code},
            )
            raise
        return f"{self._public_base_url}/{self._bucket_name}/{object_name}"

    async def delete(self, url: str) -> None:
        """Remove a stored document; unknown URLs are ignored."""
        object_name = self._object_name_from_url(url)
        if object_name is None:
            logger.warning(
                "URL does not point into the document bucket",
                extra={"url": url, "bucket_name": self._bucket_name},
            )
            return
        client = await self._get_client()
        try:
            client.remove_object(self._bucket_name, object_name)
            logger.info(
                "Document removed from Minio",
                extra={"object_name": object_name},
            )
        except S3Error as e:
            if e.code == "NoSuchKey":
                logger.warning(
                    "Document already absent from Minio",
                    extra={"object_name": object_name},
                )
                return
            logger.error(
                f"Error removing document from Minio: {e}",
                extra={"object_name": object_name, "error_code": e.code},
            )
            raise
