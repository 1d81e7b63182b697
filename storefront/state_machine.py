"""
Order status graph.

TRANSITIONS is the only place legal status changes are defined. The one
extension is ADMIN_CANCELLABLE: an admin may cancel from any non-terminal
state, which is applied only when ``transition`` is called with
``by_admin=True``.
"""

import logging
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from storefront.domain import Cancellation, Order, OrderStatus
from storefront.errors import InvalidTransition

logger = logging.getLogger(__name__)

S = OrderStatus

TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    S.PENDING: frozenset({S.PROCESSING_PAYMENT, S.CANCELLED}),
    S.PROCESSING_PAYMENT: frozenset(
        {S.PAID, S.PAYMENT_FAILED, S.PENDING, S.CANCELLED}
    ),
    S.PAID: frozenset({S.CONFIRMED, S.PACKED}),
    S.CONFIRMED: frozenset({S.PACKED}),
    S.PACKED: frozenset({S.SHIPPED}),
    S.SHIPPED: frozenset({S.DELIVERED}),
    S.PAYMENT_FAILED: frozenset({S.PENDING, S.CANCELLED}),
    S.DELIVERED: frozenset(),
    S.CANCELLED: frozenset(),
}

TERMINAL_STATES: FrozenSet[OrderStatus] = frozenset(
    status for status, targets in TRANSITIONS.items() if not targets
)

BUYER_CANCELLABLE: FrozenSet[OrderStatus] = frozenset(
    {S.PENDING, S.PAYMENT_FAILED}
)

ADMIN_CANCELLABLE: FrozenSet[OrderStatus] = frozenset(
    set(TRANSITIONS) - TERMINAL_STATES
)

# Stock has been deducted and payment captured from PAID onwards.
STOCK_DEDUCTED_STATES: FrozenSet[OrderStatus] = frozenset(
    {S.PAID, S.CONFIRMED, S.PACKED, S.SHIPPED, S.DELIVERED}
)

ADMIN_PROGRESSION_TARGETS: FrozenSet[OrderStatus] = frozenset(
    {S.CONFIRMED, S.PACKED, S.SHIPPED, S.DELIVERED}
)


def allowed_transitions(
    status: OrderStatus, by_admin: bool = False
) -> FrozenSet[OrderStatus]:
    targets = TRANSITIONS[status]
    if by_admin and status in ADMIN_CANCELLABLE:
        targets = targets | {S.CANCELLED}
    return targets


def can_transition(
    current: OrderStatus, new_status: OrderStatus, by_admin: bool = False
) -> bool:
    return new_status in allowed_transitions(current, by_admin)


def can_cancel(status: OrderStatus, by_admin: bool) -> bool:
    if by_admin:
        return status in ADMIN_CANCELLABLE
    return status in BUYER_CANCELLABLE


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATES


def transition(
    order: Order,
    new_status: OrderStatus,
    at: datetime,
    actor: Optional[str] = None,
    note: Optional[str] = None,
    by_admin: bool = False,
) -> Order:
    """Move ``order`` to ``new_status`` and record it in the history.

    Args:
        order: Order to mutate in place
        new_status: Requested status
        at: Timestamp recorded on the history entry
        actor: User id of whoever caused the change
        note: Free-text note (used as the reason for cancellations)
        by_admin: Allow the admin cancellation edge

    Returns:
        The same order, for chaining

    Raises:
        InvalidTransition: If the change is not in the status graph. The
            order is left untouched.
    """
    current = order.status
    if not can_transition(current, new_status, by_admin):
        logger.debug(
            "Rejected order status transition",
            extra={
                "order_id": order.order_id,
                "current_status": current.value,
                "requested_status": new_status.value,
                "by_admin": by_admin,
            },
        )
        raise InvalidTransition(current.value, new_status.value)

    order.status = new_status
    order.add_status_history(new_status, at, actor, note)
    if new_status == S.CANCELLED:
        order.cancellation = Cancellation(
            cancelled_at=at, cancelled_by=actor, reason=note
        )

    logger.debug(
        "Order status transitioned",
        extra={
            "order_id": order.order_id,
            "from_status": current.value,
            "to_status": new_status.value,
            "actor": actor,
        },
    )
    return order
