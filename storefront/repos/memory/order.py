"""
Memory implementation of OrderRepository.
"""

import logging
import uuid
from datetime import date, datetime
from typing import Dict, List, Optional

from storefront.domain import Order, OrderQuery, OrderStatus
from storefront.errors import ConcurrencyConflict, NumberCollision
from storefront.numbering import ORDER_PREFIX, next_number
from storefront.repositories import OrderRepository
from .base import MemoryRepositoryMixin

logger = logging.getLogger(__name__)

_SWEEPABLE = (OrderStatus.PENDING, OrderStatus.PAYMENT_FAILED)


class MemoryOrderRepository(OrderRepository, MemoryRepositoryMixin[Order]):
    """Orders kept in a dictionary keyed by order_id."""

    def __init__(self) -> None:
        self.logger = logger
        self.entity_name = "Order"
        self.storage_dict: Dict[str, Order] = {}

    async def generate_order_id(self) -> str:
        return str(uuid.uuid4())

    async def generate_order_number(self, day: date) -> str:
        return next_number(
            ORDER_PREFIX,
            day,
            (o.order_number for o in self.storage_dict.values()),
        )

    async def create_order(self, order: Order) -> None:
        if order.order_id in self.storage_dict:
            raise ConcurrencyConflict(f"Order {order.order_id} exists")
        if any(
            o.order_number == order.order_number
            for o in self.storage_dict.values()
        ):
            raise NumberCollision(
                f"Order number {order.order_number} is taken"
            )
        self.save_entity(order.order_id, order)

    async def save_order(
        self, order: Order, expected_status: OrderStatus
    ) -> None:
        stored = self.storage_dict.get(order.order_id)
        if stored is None or stored.status != expected_status:
            raise ConcurrencyConflict(
                f"Order {order.order_id} is no longer "
                f"{expected_status.value}"
            )
        self.save_entity(order.order_id, order)

    async def get_order(self, order_id: str) -> Optional[Order]:
        return self.get_entity(order_id)

    async def get_order_by_remote_order_id(
        self, remote_order_id: str
    ) -> Optional[Order]:
        for order in self.storage_dict.values():
            if order.payment.remote_order_id == remote_order_id:
                return order.model_copy(deep=True)
        return None

    async def find_open_reservations(
        self, user_id: str, now: datetime
    ) -> List[Order]:
        return [
            o
            for o in self.all_entities()
            if o.user_id == user_id
            and o.stock_reserved
            and not o.is_stock_reservation_expired(now)
        ]

    async def find_expired_reservations(self, now: datetime) -> List[Order]:
        return [
            o
            for o in self.all_entities()
            if o.status in _SWEEPABLE and o.is_stock_reservation_expired(now)
        ]

    async def list_orders(self, query: OrderQuery) -> List[Order]:
        orders = [
            o
            for o in self.all_entities()
            if (query.user_id is None or o.user_id == query.user_id)
            and (query.status is None or o.status == query.status)
            and (
                query.created_from is None
                or (o.created_at and o.created_at >= query.created_from)
            )
            and (
                query.created_to is None
                or (o.created_at and o.created_at <= query.created_to)
            )
        ]
        orders.sort(
            key=lambda o: o.created_at.timestamp() if o.created_at else 0.0,
            reverse=True,
        )
        return orders
