"""
PostgreSQL implementation of CatalogRepository.

Product metadata is a JSON document owned by the catalog service; the
stock counters live in their own columns so a decrement can be a single
conditional UPDATE.
"""

import logging
from typing import Optional

from asyncpg import Pool

from storefront.domain import Product
from storefront.repositories import CatalogRepository

logger = logging.getLogger(__name__)


class PostgreSQLCatalogRepository(CatalogRepository):
    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLCatalogRepository")

    async def get_product(self, product_id: str) -> Optional[Product]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT stock, product_data FROM products "
                "WHERE product_id = $1",
                product_id,
            )
            if row is None:
                return None
            variant_rows = await conn.fetch(
                "SELECT variant_id, stock FROM product_variants "
                "WHERE product_id = $1",
                product_id,
            )

        product = Product.model_validate_json(row["product_data"])
        product.stock = row["stock"]
        stock_by_variant = {r["variant_id"]: r["stock"] for r in variant_rows}
        for variant in product.variants:
            variant.stock = stock_by_variant.get(variant.variant_id, 0)
        return product

    async def decrement_stock(
        self, product_id: str, variant_id: Optional[str], quantity: int
    ) -> bool:
        async with self.pool.acquire() as conn:
            if variant_id is None:
                result = await conn.execute(
                    """
                    UPDATE products SET stock = stock - $2
                    WHERE product_id = $1 AND stock >= $2
                    """,
                    product_id,
                    quantity,
                )
            else:
                result = await conn.execute(
                    """
                    UPDATE product_variants SET stock = stock - $3
                    WHERE product_id = $1 AND variant_id = $2
                      AND stock >= $3
                    """,
                    product_id,
                    variant_id,
                    quantity,
                )
        applied = result.split()[-1] != "0"
        if not applied:
            logger.debug(
                "Conditional stock decrement rejected",
                extra={
                    "product_id": product_id,
                    "variant_id": variant_id,
                    "requested": quantity,
                },
            )
        return applied

    async def increment_stock(
        self, product_id: str, variant_id: Optional[str], quantity: int
    ) -> None:
        async with self.pool.acquire() as conn:
            if variant_id is None:
                await conn.execute(
                    "UPDATE products SET stock = stock + $2 "
                    "WHERE product_id = $1",
                    product_id,
                    quantity,
                )
            else:
                await conn.execute(
                    "UPDATE product_variants SET stock = stock + $3 "
                    "WHERE product_id = $1 AND variant_id = $2",
                    product_id,
                    variant_id,
                    quantity,
                )
