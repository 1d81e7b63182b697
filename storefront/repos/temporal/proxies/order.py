from storefront.errors import ConcurrencyConflict, NumberCollision
from storefront.repositories import OrderRepository
from util.repos.temporal.decorators import temporal_workflow_proxy

from ..activity_names import ORDER_REPOSITORY_ACTIVITY_BASE


@temporal_workflow_proxy(
    ORDER_REPOSITORY_ACTIVITY_BASE,
    default_timeout_seconds=10,
    retry_methods=[
        "get_order",
        "get_order_by_remote_order_id",
        "find_open_reservations",
        "find_expired_reservations",
        "list_orders",
        "save_order",
    ],
    raise_as={
        "ConcurrencyConflict": ConcurrencyConflict,
        "NumberCollision": NumberCollision,
    },
)
class WorkflowOrderRepositoryProxy(OrderRepository):
    """Workflow implementation of OrderRepository."""

    pass
