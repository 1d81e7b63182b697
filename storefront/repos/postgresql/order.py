"""
PostgreSQL implementation of OrderRepository.

The full order is stored as a JSON document; the columns used for
lookups and for the conditional write (status, reservation, remote
order id) are duplicated next to it.
"""

import logging
import uuid
from datetime import date, datetime
from typing import Any, List, Optional

from asyncpg import Pool, UniqueViolationError

from storefront.domain import Order, OrderQuery, OrderStatus
from storefront.errors import ConcurrencyConflict, NumberCollision
from storefront.numbering import ORDER_PREFIX, day_prefix, next_number
from storefront.repositories import OrderRepository

logger = logging.getLogger(__name__)

SWEEPABLE_STATUSES = [
    OrderStatus.PENDING.value,
    OrderStatus.PAYMENT_FAILED.value,
]


class PostgreSQLOrderRepository(OrderRepository):
    """
    PostgreSQL implementation of OrderRepository.
    Uses PostgreSQL for persistence of orders.
    """

    def __init__(self, pool: Pool):
        """
        Initialize with an asyncpg connection pool.

        Args:
            pool: asyncpg connection pool for database operations
        """
        self.pool = pool
        logger.debug("Initialized PostgreSQLOrderRepository")

    @staticmethod
    def _parse_rows(rows: List[Any]) -> List[Order]:
        orders = []
        for row in rows:
            try:
                orders.append(Order.model_validate_json(row["order_data"]))
            except Exception as e:
                logger.warning(
                    f"Failed to parse order data: {e}",
                    extra={"order_id": row["order_id"]},
                )
        return orders

    async def generate_order_id(self) -> str:
        """Generate a unique order ID using uuid4"""
        return str(uuid.uuid4())

    async def generate_order_number(self, day: date) -> str:
        prefix = day_prefix(ORDER_PREFIX, day)
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT order_number FROM orders WHERE order_number LIKE $1",
                prefix + "%",
            )
        return next_number(ORDER_PREFIX, day, (r["order_number"] for r in rows))

    async def create_order(self, order: Order) -> None:
        query = """
            INSERT INTO orders (
                order_id, order_number, user_id, status, remote_order_id,
                stock_reserved, stock_reservation_expiry,
                created_at, updated_at, order_data
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
        """
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    query,
                    order.order_id,
                    order.order_number,
                    order.user_id,
                    order.status.value,
                    order.payment.remote_order_id,
                    order.stock_reserved,
                    order.stock_reservation_expiry,
                    order.created_at,
                    order.updated_at or order.created_at,
                    order.model_dump_json(),
                )
        except UniqueViolationError as e:
            if e.constraint_name == "orders_order_number_key":
                raise NumberCollision(
                    f"Order number {order.order_number} is taken"
                ) from e
            raise ConcurrencyConflict(
                f"Order {order.order_id} already exists"
            ) from e

        logger.info(
            "Created order in PostgreSQL",
            extra={
                "order_id": order.order_id,
                "order_number": order.order_number,
            },
        )

    async def save_order(
        self, order: Order, expected_status: OrderStatus
    ) -> None:
        query = """
            UPDATE orders SET
                status = $2,
                remote_order_id = $3,
                stock_reserved = $4,
                stock_reservation_expiry = $5,
                updated_at = $6,
                order_data = $7
            WHERE order_id = $1 AND status = $8
        """
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                query,
                order.order_id,
                order.status.value,
                order.payment.remote_order_id,
                order.stock_reserved,
                order.stock_reservation_expiry,
                order.updated_at,
                order.model_dump_json(),
                expected_status.value,
            )

        # asyncpg returns the command tag, e.g. "UPDATE 1"
        if result.split()[-1] == "0":
            raise ConcurrencyConflict(
                f"Order {order.order_id} is no longer "
                f"{expected_status.value}"
            )
        logger.debug(
            "Saved order to PostgreSQL",
            extra={
                "order_id": order.order_id,
                "status": order.status.value,
            },
        )

    async def get_order(self, order_id: str) -> Optional[Order]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT order_id, order_data FROM orders WHERE order_id = $1",
                order_id,
            )
        orders = self._parse_rows(rows)
        return orders[0] if orders else None

    async def get_order_by_remote_order_id(
        self, remote_order_id: str
    ) -> Optional[Order]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT order_id, order_data FROM orders
                WHERE remote_order_id = $1
                """,
                remote_order_id,
            )
        orders = self._parse_rows(rows)
        return orders[0] if orders else None

    async def find_open_reservations(
        self, user_id: str, now: datetime
    ) -> List[Order]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT order_id, order_data FROM orders
                WHERE user_id = $1
                  AND stock_reserved
                  AND stock_reservation_expiry >= $2
                """,
                user_id,
                now,
            )
        return self._parse_rows(rows)

    async def find_expired_reservations(self, now: datetime) -> List[Order]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT order_id, order_data FROM orders
                WHERE stock_reserved
                  AND stock_reservation_expiry < $1
                  AND status = ANY($2)
                """,
                now,
                SWEEPABLE_STATUSES,
            )
        return self._parse_rows(rows)

    async def list_orders(self, query: OrderQuery) -> List[Order]:
        clauses = []
        args: List[Any] = []
        if query.user_id:
            args.append(query.user_id)
            clauses.append(f"user_id = ${len(args)}")
        if query.status:
            args.append(query.status.value)
            clauses.append(f"status = ${len(args)}")
        if query.created_from:
            args.append(query.created_from)
            clauses.append(f"created_at >= ${len(args)}")
        if query.created_to:
            args.append(query.created_to)
            clauses.append(f"created_at <= ${len(args)}")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT order_id, order_data FROM orders {where} "
                "ORDER BY created_at DESC",
                *args,
            )
        return self._parse_rows(rows)
