"""
Dependency injection for FastAPI endpoints.

``STOREFRONT_BACKEND`` selects the wiring: ``postgresql`` (default) uses
asyncpg, MinIO and Temporal; ``memory`` keeps everything in process for
local runs. Tests replace individual dependencies with
``app.dependency_overrides``.
"""

import logging
import os
from typing import Any, Dict, Optional

import asyncpg
from fastapi import Depends, Header, HTTPException
from temporalio.client import Client
from temporalio.contrib.pydantic import pydantic_data_converter

from storefront.config import StoreConfig
from storefront.domain import Actor
from storefront.invoicing import (
    GetInvoiceUseCase,
    InvoiceDocumentPipeline,
    InvoiceGenerator,
)
from storefront.repos.http.payment_gateway import HttpPaymentGateway
from storefront.repos.jinja.invoice_renderer import JinjaInvoiceRenderer
from storefront.repos.log.notification import LoggingNotificationService
from storefront.repositories import (
    CatalogRepository,
    InvoiceRenderScheduler,
    InvoiceRepository,
    NotificationService,
    OrderRepository,
    PaymentGateway,
)
from storefront.usecase import OrderOrchestrator
from util.repositories import FileStorageRepository

logger = logging.getLogger(__name__)

TASK_QUEUE = "storefront-task-queue"


class DependencyContainer:
    """
    Dependency injection container with singleton lifecycle management.
    Always creates real clients; mocks are provided by test overrides.
    """

    def __init__(self) -> None:
        self._instances: Dict[str, Any] = {}

    async def get_or_create(self, key: str, factory: Any) -> Any:
        """Get or create a singleton instance."""
        if key not in self._instances:
            self._instances[key] = await factory()
        return self._instances[key]

    @property
    def backend(self) -> str:
        return os.environ.get("STOREFRONT_BACKEND", "postgresql").lower()

    async def get_config(self) -> StoreConfig:
        return await self.get_or_create(  # type: ignore[no-any-return]
            "config", self._create_config
        )

    async def _create_config(self) -> StoreConfig:
        return StoreConfig.from_env()

    async def get_pool(self) -> asyncpg.Pool:
        return await self.get_or_create(  # type: ignore[no-any-return]
            "pool", self._create_pool
        )

    async def _create_pool(self) -> asyncpg.Pool:
        dsn = os.environ.get(
            "DATABASE_URL", "postgresql://storefront@localhost/storefront"
        )
        logger.debug("Creating asyncpg pool")
        return await asyncpg.create_pool(dsn)

    async def get_temporal_client(self) -> Client:
        """Get or create Temporal client."""
        client = await self.get_or_create(
            "temporal_client", self._create_temporal_client
        )
        return client  # type: ignore[no-any-return]

    async def _create_temporal_client(self) -> Client:
        """Create Temporal client with proper configuration."""
        temporal_endpoint = os.environ.get(
            "TEMPORAL_ENDPOINT", "temporal:7233"
        )
        logger.debug(
            "Creating Temporal client",
            extra={"endpoint": temporal_endpoint, "namespace": "default"},
        )

        client = await Client.connect(
            temporal_endpoint,
            namespace="default",
            data_converter=pydantic_data_converter,
        )

        logger.debug(
            "Temporal client created",
            extra={
                "endpoint": temporal_endpoint,
                "data_converter_type": type(client.data_converter).__name__,
            },
        )
        return client

    async def _create_memory_repositories(self) -> Dict[str, Any]:
        from storefront.repos.memory import (
            MemoryCatalogRepository,
            MemoryInvoiceRepository,
            MemoryOrderRepository,
        )
        from util.repos.memory.file_storage import (
            MemoryFileStorageRepository,
        )

        return {
            "order": MemoryOrderRepository(),
            "catalog": MemoryCatalogRepository(),
            "invoice": MemoryInvoiceRepository(),
            "file_storage": MemoryFileStorageRepository(),
        }

    async def _create_postgresql_repositories(self) -> Dict[str, Any]:
        from storefront.repos.postgresql import (
            PostgreSQLCatalogRepository,
            PostgreSQLInvoiceRepository,
            PostgreSQLOrderRepository,
        )
        from util.repos.minio.file_storage import MinioFileStorageRepository

        pool = await self.get_pool()
        return {
            "order": PostgreSQLOrderRepository(pool),
            "catalog": PostgreSQLCatalogRepository(pool),
            "invoice": PostgreSQLInvoiceRepository(pool),
            "file_storage": MinioFileStorageRepository(),
        }

    async def get_repositories(self) -> Dict[str, Any]:
        factory = (
            self._create_memory_repositories
            if self.backend == "memory"
            else self._create_postgresql_repositories
        )
        return await self.get_or_create(  # type: ignore[no-any-return]
            "repositories", factory
        )


# Global container instance
_container = DependencyContainer()


async def get_store_config() -> StoreConfig:
    """FastAPI dependency for StoreConfig."""
    return await _container.get_config()


async def get_order_repository() -> OrderRepository:
    return (await _container.get_repositories())["order"]  # type: ignore[no-any-return]


async def get_catalog_repository() -> CatalogRepository:
    return (await _container.get_repositories())["catalog"]  # type: ignore[no-any-return]


async def get_invoice_repository() -> InvoiceRepository:
    return (await _container.get_repositories())["invoice"]  # type: ignore[no-any-return]


async def get_file_storage_repository() -> FileStorageRepository:
    return (await _container.get_repositories())["file_storage"]  # type: ignore[no-any-return]


async def get_payment_gateway(
    config: StoreConfig = Depends(get_store_config),
) -> PaymentGateway:
    """FastAPI dependency for the HTTP payment gateway."""
    return HttpPaymentGateway(
        base_url=config.gateway_base_url,
        key_id=config.gateway_key_id,
        key_secret=config.gateway_key_secret,
        timeout=config.gateway_timeout_seconds,
    )


async def get_notification_service() -> NotificationService:
    return LoggingNotificationService()


async def get_document_pipeline(
    invoice_repo: InvoiceRepository = Depends(get_invoice_repository),
    file_storage: FileStorageRepository = Depends(
        get_file_storage_repository
    ),
    config: StoreConfig = Depends(get_store_config),
) -> InvoiceDocumentPipeline:
    """FastAPI dependency for in-process invoice rendering."""
    return InvoiceDocumentPipeline(
        invoice_repo=invoice_repo,
        renderer=JinjaInvoiceRenderer(
            seller_name=config.seller_name,
            seller_gstin=config.seller_gstin,
        ),
        file_storage=file_storage,
        config=config,
    )


async def get_render_scheduler(
    config: StoreConfig = Depends(get_store_config),
    pipeline: InvoiceDocumentPipeline = Depends(get_document_pipeline),
) -> InvoiceRenderScheduler:
    """
    Rendering is handed to InvoiceRenderWorkflow when Temporal is in use,
    and runs in process with the memory backend.
    """
    if _container.backend == "memory":
        return pipeline
    from storefront.repos.temporal.render_scheduler import (
        TemporalInvoiceRenderScheduler,
    )

    client = await _container.get_temporal_client()
    return TemporalInvoiceRenderScheduler(
        client, task_queue=TASK_QUEUE, invoice_folder=config.invoice_folder
    )


async def get_invoice_generator(
    order_repo: OrderRepository = Depends(get_order_repository),
    catalog_repo: CatalogRepository = Depends(get_catalog_repository),
    invoice_repo: InvoiceRepository = Depends(get_invoice_repository),
    config: StoreConfig = Depends(get_store_config),
    scheduler: InvoiceRenderScheduler = Depends(get_render_scheduler),
) -> InvoiceGenerator:
    return InvoiceGenerator(
        order_repo=order_repo,
        catalog_repo=catalog_repo,
        invoice_repo=invoice_repo,
        config=config,
        render_scheduler=scheduler,
    )


async def get_order_orchestrator(
    order_repo: OrderRepository = Depends(get_order_repository),
    catalog_repo: CatalogRepository = Depends(get_catalog_repository),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifications: NotificationService = Depends(get_notification_service),
    config: StoreConfig = Depends(get_store_config),
    invoice_generator: InvoiceGenerator = Depends(get_invoice_generator),
) -> OrderOrchestrator:
    """FastAPI dependency for OrderOrchestrator."""
    return OrderOrchestrator(
        order_repo=order_repo,
        catalog_repo=catalog_repo,
        payment_gateway=gateway,
        notification_service=notifications,
        config=config,
        invoice_generator=invoice_generator,
    )


async def get_invoice_use_case(
    invoice_repo: InvoiceRepository = Depends(get_invoice_repository),
) -> GetInvoiceUseCase:
    return GetInvoiceUseCase(invoice_repo)


async def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Actor:
    """
    Identity set by the upstream auth gateway.

    Authentication happens before requests reach this service; only the
    resulting user id and role are read here.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id")
    role = (x_user_role or "buyer").lower()
    if role not in ("buyer", "admin"):
        raise HTTPException(status_code=403, detail="Unknown role")
    return Actor(user_id=x_user_id, role=role)


async def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return actor
