"""
Memory implementation of CatalogRepository.
"""

import logging
from typing import Dict, Optional

from storefront.domain import Product
from storefront.repositories import CatalogRepository
from .base import MemoryRepositoryMixin

logger = logging.getLogger(__name__)


class MemoryCatalogRepository(
    CatalogRepository, MemoryRepositoryMixin[Product]
):
    def __init__(self) -> None:
        self.logger = logger
        self.entity_name = "Product"
        self.storage_dict: Dict[str, Product] = {}

    def add_product(self, product: Product) -> None:
        """Seed helper for tests and local runs."""
        self.save_entity(product.product_id, product)

    async def get_product(self, product_id: str) -> Optional[Product]:
        return self.get_entity(product_id)

    async def decrement_stock(
        self, product_id: str, variant_id: Optional[str], quantity: int
    ) -> bool:
        product = self.storage_dict.get(product_id)
        if product is None:
            return False
        target = (
            product if variant_id is None else product.find_variant(variant_id)
        )
        if target is None or target.stock < quantity:
            logger.debug(
                "Conditional stock decrement rejected",
                extra={
                    "product_id": product_id,
                    "variant_id": variant_id,
                    "requested": quantity,
                    "available": target.stock if target else None,
                },
            )
            return False
        target.stock -= quantity
        return True

    async def increment_stock(
        self, product_id: str, variant_id: Optional[str], quantity: int
    ) -> None:
        product = self.storage_dict.get(product_id)
        if product is None:
            logger.warning(
                "Cannot restore stock of unknown product",
                extra={"product_id": product_id},
            )
            return
        target = (
            product if variant_id is None else product.find_variant(variant_id)
        )
        if target is None:
            logger.warning(
                "Cannot restore stock of unknown variant",
                extra={"product_id": product_id, "variant_id": variant_id},
            )
            return
        target.stock += quantity
