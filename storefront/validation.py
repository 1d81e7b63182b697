"""
Runtime validation of architectural contracts and boundary data.

- Injected repositories and collaborators are checked against their
  @runtime_checkable protocols when a service is constructed, so wiring
  mistakes fail at startup instead of mid-order.
- Untyped payloads (webhook bodies, CLI input) are validated into domain
  models, turning pydantic errors into OrderValidationError.
"""

import logging
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError

from storefront.errors import OrderValidationError

logger = logging.getLogger(__name__)

P = TypeVar("P")
M = TypeVar("M", bound=BaseModel)


class RepositoryValidationError(Exception):
    """Raised when repository contract validation fails"""

    pass


def validate_repository_protocol(
    repository: object, protocol: Type[P]
) -> None:
    """
    Validate that a repository implementation satisfies a protocol contract.

    Args:
        repository: The repository implementation to validate
        protocol: The protocol class to validate against

    Raises:
        RepositoryValidationError: If validation fails

    Example:
        >>> from storefront.repos.memory import MemoryOrderRepository
        >>> from storefront.repositories import OrderRepository
        >>> validate_repository_protocol(
        ...     MemoryOrderRepository(), OrderRepository
        ... )
    """
    if not isinstance(repository, protocol):
        logger.error(
            "Repository protocol validation failed",
            extra={
                "repository_type": type(repository).__name__,
                "protocol_name": protocol.__name__,
            },
        )
        raise RepositoryValidationError(
            f"Repository {type(repository).__name__} does not implement "
            f"{protocol.__name__} protocol. Missing or incorrect methods."
        )

    logger.debug(
        "Repository protocol validation passed",
        extra={
            "repository_type": type(repository).__name__,
            "protocol_name": protocol.__name__,
        },
    )


def ensure_repository_protocol(repository: object, protocol: Type[P]) -> P:
    """Validate and return a repository typed as its protocol."""
    validate_repository_protocol(repository, protocol)
    return repository  # type: ignore[return-value]


def validate_domain_model(data: Any, model_class: Type[M]) -> M:
    """
    Validate untyped data into a domain model.

    Raises:
        OrderValidationError: If the data does not fit the model
    """
    try:
        return model_class.model_validate(data)
    except ValidationError as e:
        logger.warning(
            "Domain model validation failed",
            extra={
                "model_class": model_class.__name__,
                "validation_errors": e.errors(include_url=False),
            },
        )
        raise OrderValidationError(
            f"Invalid {model_class.__name__}: {e.error_count()} error(s)"
        ) from e


def ensure_order_repository(repo: object) -> Any:
    """Ensure an object satisfies the OrderRepository protocol"""
    from storefront.repositories import OrderRepository

    return ensure_repository_protocol(repo, OrderRepository)  # type: ignore[type-abstract]


def ensure_catalog_repository(repo: object) -> Any:
    """Ensure an object satisfies the CatalogRepository protocol"""
    from storefront.repositories import CatalogRepository

    return ensure_repository_protocol(repo, CatalogRepository)  # type: ignore[type-abstract]


def ensure_invoice_repository(repo: object) -> Any:
    """Ensure an object satisfies the InvoiceRepository protocol"""
    from storefront.repositories import InvoiceRepository

    return ensure_repository_protocol(repo, InvoiceRepository)  # type: ignore[type-abstract]


def ensure_payment_gateway(gateway: object) -> Any:
    """Ensure an object satisfies the PaymentGateway protocol"""
    from storefront.repositories import PaymentGateway

    return ensure_repository_protocol(gateway, PaymentGateway)  # type: ignore[type-abstract]


def ensure_notification_service(service: object) -> Any:
    """Ensure an object satisfies the NotificationService protocol"""
    from storefront.repositories import NotificationService

    return ensure_repository_protocol(service, NotificationService)  # type: ignore[type-abstract]


def ensure_invoice_renderer(renderer: object) -> Any:
    """Ensure an object satisfies the InvoiceRenderer protocol"""
    from storefront.repositories import InvoiceRenderer

    return ensure_repository_protocol(renderer, InvoiceRenderer)  # type: ignore[type-abstract]


def ensure_render_scheduler(scheduler: object) -> Any:
    """Ensure an object satisfies the InvoiceRenderScheduler protocol"""
    from storefront.repositories import InvoiceRenderScheduler

    return ensure_repository_protocol(scheduler, InvoiceRenderScheduler)  # type: ignore[type-abstract]


def ensure_file_storage_repository(repo: object) -> Any:
    """Ensure an object satisfies the FileStorageRepository protocol"""
    from util.repositories import FileStorageRepository

    return ensure_repository_protocol(repo, FileStorageRepository)  # type: ignore[type-abstract]
