"""
Admin API router.

Routes (mounted with the '/admin' prefix, admin role required):
- GET /admin/orders - Filtered order listing with pagination
- PATCH /admin/orders/{order_id}/status - Fulfilment progression
- POST /admin/orders/{order_id}/cancel - Cancel any non-terminal order
- POST /admin/orders/{order_id}/cod-collected - Record COD collection
- POST /admin/orders/{order_id}/refund - Refund the captured payment
- POST /admin/invoices/{invoice_id}/render - Re-render an invoice document
- POST /admin/maintenance/reservations/sweep - Release expired reservations
"""

import logging
from datetime import datetime
from typing import Optional, cast

from fastapi import APIRouter, Depends
from fastapi_pagination import Page, paginate

from storefront.api.dependencies import (
    get_invoice_use_case,
    get_order_orchestrator,
    get_render_scheduler,
    require_admin,
)
from storefront.api.errors import http_error, internal_error
from storefront.api.requests import CancelOrderRequest, RefundRequest
from storefront.api.responses import RenderScheduledResponse, SweepResponse
from storefront.domain import (
    Actor,
    Order,
    OrderOutcome,
    OrderQuery,
    OrderStatus,
    StatusUpdateRequest,
)
from storefront.errors import StorefrontError
from storefront.invoicing import GetInvoiceUseCase
from storefront.repositories import InvoiceRenderScheduler
from storefront.usecase import OrderOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/orders", response_model=Page[Order])
async def list_orders(
    user_id: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    admin: Actor = Depends(require_admin),
    orchestrator: OrderOrchestrator = Depends(get_order_orchestrator),
) -> Page[Order]:
    """
    Get a paginated list of orders, newest first.

    All filters are optional and combine with AND.
    """
    query = OrderQuery(
        user_id=user_id,
        status=status,
        created_from=created_from,
        created_to=created_to,
    )
    logger.info(
        "Admin order listing requested",
        extra={"admin_id": admin.user_id, **query.model_dump(mode="json")},
    )
    try:
        orders = await orchestrator.list_orders(query)
    except Exception as e:
        raise internal_error("list orders", e, admin_id=admin.user_id) from e
    return cast(Page[Order], paginate(orders))


@router.patch("/orders/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: str,
    request: StatusUpdateRequest,
    admin: Actor = Depends(require_admin),
    orchestrator: OrderOrchestrator = Depends(get_order_orchestrator),
) -> Order:
    """
    Move a paid order through CONFIRMED, PACKED, SHIPPED and DELIVERED.

    Shipping requires a tracking number.
    """
    try:
        return await orchestrator.update_status(order_id, admin, request)
    except StorefrontError as e:
        raise http_error(e) from e
    except Exception as e:
        raise internal_error(
            "update order status",
            e,
            order_id=order_id,
            status=request.status.value,
        ) from e


@router.post("/orders/{order_id}/cancel", response_model=OrderOutcome)
async def cancel_order(
    order_id: str,
    request: CancelOrderRequest,
    admin: Actor = Depends(require_admin),
    orchestrator: OrderOrchestrator = Depends(get_order_orchestrator),
) -> OrderOutcome:
    try:
        outcome = await orchestrator.cancel_order(
            order_id, admin, request.reason
        )
    except StorefrontError as e:
        raise http_error(e) from e
    except Exception as e:
        raise internal_error("cancel order", e, order_id=order_id) from e

    if outcome.requires_refund:
        logger.warning(
            "Cancelled order requires refund",
            extra={"order_id": order_id, "admin_id": admin.user_id},
        )
    return outcome


@router.post("/orders/{order_id}/cod-collected", response_model=Order)
async def mark_cod_collected(
    order_id: str,
    admin: Actor = Depends(require_admin),
    orchestrator: OrderOrchestrator = Depends(get_order_orchestrator),
) -> Order:
    try:
        return await orchestrator.mark_cod_collected(order_id, admin)
    except StorefrontError as e:
        raise http_error(e) from e
    except Exception as e:
        raise internal_error(
            "record COD collection", e, order_id=order_id
        ) from e


@router.post("/orders/{order_id}/refund", response_model=Order)
async def refund_order(
    order_id: str,
    request: RefundRequest,
    admin: Actor = Depends(require_admin),
    orchestrator: OrderOrchestrator = Depends(get_order_orchestrator),
) -> Order:
    try:
        return await orchestrator.refund_order(
            order_id, admin, request.reason
        )
    except StorefrontError as e:
        raise http_error(e) from e
    except Exception as e:
        raise internal_error("refund order", e, order_id=order_id) from e


@router.post(
    "/invoices/{invoice_id}/render",
    response_model=RenderScheduledResponse,
    status_code=202,
)
async def render_invoice(
    invoice_id: str,
    admin: Actor = Depends(require_admin),
    use_case: GetInvoiceUseCase = Depends(get_invoice_use_case),
    scheduler: InvoiceRenderScheduler = Depends(get_render_scheduler),
) -> RenderScheduledResponse:
    """Request a fresh document for an existing invoice."""
    try:
        await use_case.get_invoice(invoice_id, admin)
        await scheduler.schedule_render(invoice_id)
    except StorefrontError as e:
        raise http_error(e) from e
    except Exception as e:
        raise internal_error(
            "schedule invoice render", e, invoice_id=invoice_id
        ) from e

    logger.info(
        "Invoice render scheduled",
        extra={"invoice_id": invoice_id, "admin_id": admin.user_id},
    )
    return RenderScheduledResponse(
        invoice_id=invoice_id, status="RENDER_SCHEDULED"
    )


@router.post("/maintenance/reservations/sweep", response_model=SweepResponse)
async def sweep_reservations(
    admin: Actor = Depends(require_admin),
    orchestrator: OrderOrchestrator = Depends(get_order_orchestrator),
) -> SweepResponse:
    """Run one reservation sweep now instead of waiting for the schedule."""
    try:
        released = await orchestrator.cleanup_expired_reservations()
    except Exception as e:
        raise internal_error(
            "sweep reservations", e, admin_id=admin.user_id
        ) from e
    return SweepResponse(released=released)
