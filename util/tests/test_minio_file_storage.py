"""
Tests for MinioFileStorageRepository with the Minio client mocked out.
"""

from unittest.mock import MagicMock, patch

import pytest

from util.repos.minio.file_storage import MinioFileStorageRepository


@pytest.fixture
def minio_client():
    with patch("util.repos.minio.file_storage.Minio") as minio_class:
        client = MagicMock()
        client.bucket_exists.return_value = False
        minio_class.return_value = client
        yield client


@pytest.fixture
def storage(minio_client: MagicMock) -> MinioFileStorageRepository:
    return MinioFileStorageRepository(
        endpoint="minio:9000",
        bucket_name="documents",
        public_base_url="https://files.example.test/",
    )


@pytest.mark.asyncio
async def test_store_creates_bucket_and_returns_url(
    storage: MinioFileStorageRepository, minio_client: MagicMock
) -> None:
    url = await storage.store(
        b"<html></html>", "text/html", "/invoices/", "INV-1.html"
    )

    assert url == "https://files.example.test/documents/invoices/INV-1.html"
    minio_client.make_bucket.assert_called_once_with("documents")
    args, kwargs = minio_client.put_object.call_args
    assert args[0] == "documents"
    assert args[1] == "invoices/INV-1.html"
    assert args[2].read() == b"<html></html>"
    assert args[3] == 13
    assert kwargs["content_type"] == "text/html"


@pytest.mark.asyncio
async def test_delete_removes_object(
    storage: MinioFileStorageRepository, minio_client: MagicMock
) -> None:
    await storage.delete(
        "https://files.example.test/documents/invoices/INV-1.html"
    )

    minio_client.remove_object.assert_called_once_with(
        "documents", "invoices/INV-1.html"
    )


@pytest.mark.asyncio
async def test_delete_ignores_foreign_urls(
    storage: MinioFileStorageRepository, minio_client: MagicMock
) -> None:
    await storage.delete("https://elsewhere.test/other-bucket/x.html")

    minio_client.remove_object.assert_not_called()


def test_public_url_defaults_to_endpoint(
    minio_client: MagicMock, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("MINIO_PUBLIC_URL", raising=False)
    storage = MinioFileStorageRepository(
        endpoint="minio:9000", bucket_name="documents"
    )

    assert storage._public_base_url == "http://minio:9000"
