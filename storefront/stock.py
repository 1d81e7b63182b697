"""
Stock ledger.

Two-phase inventory handling:

- Reservation is advisory. It is a flag plus an expiry on the order and
  never touches the shared stock counter, so two buyers can both reserve
  the last unit. The race is settled at deduction, where the later payer
  loses.
- Deduction is authoritative. Each line is a conditional decrement that
  only succeeds while enough stock is left; a failing line rolls back the
  lines already applied in the same batch.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from storefront.config import StoreConfig
from storefront.domain import Order, OrderItem, Product
from storefront.errors import InsufficientStock
from storefront.repositories import CatalogRepository, OrderRepository
from storefront.validation import (
    ensure_catalog_repository,
    ensure_order_repository,
)

logger = logging.getLogger(__name__)

StockKey = Tuple[str, Optional[str]]


def _describe(item: OrderItem) -> str:
    if item.variant_name:
        return f"{item.name} ({item.variant_name})"
    return item.name


class StockLedger:
    """Availability checks, advisory reservations and authoritative
    deductions against the catalog's stock counters."""

    def __init__(
        self,
        catalog_repo: CatalogRepository,
        order_repo: OrderRepository,
        config: StoreConfig,
    ) -> None:
        self.catalog_repo = ensure_catalog_repository(catalog_repo)
        self.order_repo = ensure_order_repository(order_repo)
        self.config = config

    async def _reserved_by_buyer(
        self, buyer_id: str, now: datetime
    ) -> Dict[StockKey, int]:
        reserved: Dict[StockKey, int] = defaultdict(int)
        for order in await self.order_repo.find_open_reservations(
            buyer_id, now
        ):
            for item in order.items:
                reserved[item.stock_key] += item.quantity
        return reserved

    async def check_availability(
        self,
        items: Sequence[OrderItem],
        now: datetime,
        buyer_id: Optional[str] = None,
        products: Optional[Dict[str, Product]] = None,
    ) -> None:
        """Verify current stock covers ``items``.

        Quantities already held by the buyer's open reservations count
        towards demand, so adding more of the same item in a second order
        cannot double-count stock.

        Args:
            items: Lines to check
            now: Current time, used to ignore expired reservations
            buyer_id: Buyer whose open reservations are taken into account
            products: Products already loaded by the caller, keyed by id

        Raises:
            InsufficientStock: Naming the first line that cannot be served
        """
        demand: Dict[StockKey, int] = defaultdict(int)
        for item in items:
            demand[item.stock_key] += item.quantity

        held = (
            await self._reserved_by_buyer(buyer_id, now) if buyer_id else {}
        )
        loaded = dict(products or {})

        for item in items:
            product = loaded.get(item.product_id)
            if product is None:
                product = await self.catalog_repo.get_product(item.product_id)
                if product is not None:
                    loaded[item.product_id] = product
            available = product.stock_for(item.variant_id) if product else 0
            requested = demand[item.stock_key] + held.get(item.stock_key, 0)
            if requested > available:
                logger.info(
                    "Insufficient stock",
                    extra={
                        "product_id": item.product_id,
                        "variant_id": item.variant_id,
                        "requested": requested,
                        "already_reserved": held.get(item.stock_key, 0),
                        "available": available,
                    },
                )
                raise InsufficientStock(
                    _describe(item),
                    requested,
                    available,
                    item.product_id,
                    item.variant_id,
                )

    def reserve(self, order: Order, now: datetime) -> None:
        """Mark the order's stock as soft-reserved until the timeout."""
        order.reserve_stock(now, self.config.reservation_timeout_minutes)
        logger.debug(
            "Stock reserved for order",
            extra={
                "order_id": order.order_id,
                "expires_at": (
                    order.stock_reservation_expiry.isoformat()
                    if order.stock_reservation_expiry
                    else None
                ),
            },
        )

    def release(self, order: Order) -> None:
        """Drop an advisory reservation. No counter is touched."""
        order.release_stock_reservation()

    async def deduct(self, items: Sequence[OrderItem]) -> None:
        """Decrement stock for every line, all or nothing.

        Raises:
            InsufficientStock: When a line cannot be decremented. Lines
                applied before it have been restored.
        """
        applied: List[OrderItem] = []
        for item in items:
            ok = await self.catalog_repo.decrement_stock(
                item.product_id, item.variant_id, item.quantity
            )
            if not ok:
                logger.warning(
                    "Stock deduction failed, rolling back batch",
                    extra={
                        "product_id": item.product_id,
                        "variant_id": item.variant_id,
                        "quantity": item.quantity,
                        "rolled_back_lines": len(applied),
                    },
                )
                await self.restore(applied)
                product = await self.catalog_repo.get_product(item.product_id)
                available = product.stock_for(item.variant_id) if product else 0
                raise InsufficientStock(
                    _describe(item),
                    item.quantity,
                    available,
                    item.product_id,
                    item.variant_id,
                )
            applied.append(item)

        logger.info(
            "Stock deducted",
            extra={"lines": len(applied)},
        )

    async def restore(self, items: Sequence[OrderItem]) -> None:
        """Return deducted quantities to stock, newest line first."""
        for item in reversed(list(items)):
            try:
                await self.catalog_repo.increment_stock(
                    item.product_id, item.variant_id, item.quantity
                )
            except Exception as e:
                # keep restoring the other lines; this one needs a human
                logger.error(
                    "Failed to restore stock",
                    extra={
                        "product_id": item.product_id,
                        "variant_id": item.variant_id,
                        "quantity": item.quantity,
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                    },
                    exc_info=True,
                )
