"""
Buyer order API router.

Routes (mounted with the '/orders' prefix):
- POST /orders - Place an order and reserve stock
- GET /orders - List the buyer's orders with pagination
- GET /orders/{order_id} - Order details
- POST /orders/{order_id}/payment - Open a gateway payment
- POST /orders/{order_id}/payment/verify - Verify the checkout callback
- POST /orders/{order_id}/payment/failure - Report a checkout failure
- POST /orders/{order_id}/cancel - Cancel a not-yet-paid order
- GET /orders/{order_id}/invoice - The order's invoice
"""

import logging
from typing import cast

from fastapi import APIRouter, Depends
from fastapi_pagination import Page, paginate

from storefront.api.dependencies import (
    get_actor,
    get_invoice_use_case,
    get_order_orchestrator,
)
from storefront.api.errors import http_error, internal_error
from storefront.api.requests import CancelOrderRequest, PaymentFailureRequest
from storefront.domain import (
    Actor,
    CreatedOrder,
    CreateOrderRequest,
    Invoice,
    Order,
    OrderOutcome,
    OrderQuery,
    PaymentInitiation,
    PaymentProof,
)
from storefront.errors import StorefrontError
from storefront.invoicing import GetInvoiceUseCase
from storefront.usecase import OrderOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=CreatedOrder, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    actor: Actor = Depends(get_actor),
    orchestrator: OrderOrchestrator = Depends(get_order_orchestrator),
) -> CreatedOrder:
    """Place an order; stock is reserved until payment or expiry."""
    logger.info(
        "Order creation requested",
        extra={
            "user_id": actor.user_id,
            "item_count": len(request.items),
            "payment_mode": request.payment_mode.value,
        },
    )
    try:
        return await orchestrator.create_order(actor.user_id or "", request)
    except StorefrontError as e:
        raise http_error(e) from e
    except Exception as e:
        raise internal_error("create order", e, user_id=actor.user_id) from e


@router.get("", response_model=Page[Order])
async def list_my_orders(
    actor: Actor = Depends(get_actor),
    orchestrator: OrderOrchestrator = Depends(get_order_orchestrator),
) -> Page[Order]:
    try:
        orders = await orchestrator.list_orders(
            OrderQuery(user_id=actor.user_id)
        )
    except Exception as e:
        raise internal_error("list orders", e, user_id=actor.user_id) from e
    return cast(Page[Order], paginate(orders))


@router.get("/{order_id}", response_model=Order)
async def get_order(
    order_id: str,
    actor: Actor = Depends(get_actor),
    orchestrator: OrderOrchestrator = Depends(get_order_orchestrator),
) -> Order:
    try:
        return await orchestrator.get_order(order_id, actor)
    except StorefrontError as e:
        raise http_error(e) from e
    except Exception as e:
        raise internal_error("retrieve order", e, order_id=order_id) from e


@router.post("/{order_id}/payment", response_model=PaymentInitiation)
async def initiate_payment(
    order_id: str,
    actor: Actor = Depends(get_actor),
    orchestrator: OrderOrchestrator = Depends(get_order_orchestrator),
) -> PaymentInitiation:
    """Create the gateway order the buyer's checkout will pay."""
    try:
        return await orchestrator.initiate_payment(
            order_id, actor.user_id or ""
        )
    except StorefrontError as e:
        raise http_error(e) from e
    except Exception as e:
        raise internal_error(
            "initiate payment", e, order_id=order_id
        ) from e


@router.post("/{order_id}/payment/verify", response_model=OrderOutcome)
async def verify_payment(
    order_id: str,
    proof: PaymentProof,
    actor: Actor = Depends(get_actor),
    orchestrator: OrderOrchestrator = Depends(get_order_orchestrator),
) -> OrderOutcome:
    """
    Verify the checkout callback.

    A rejected signature is a normal outcome (``success`` false), not an
    HTTP error. Captured payments without stock come back with
    ``requires_refund`` set.
    """
    try:
        outcome = await orchestrator.verify_payment(
            order_id, proof, actor.user_id
        )
    except StorefrontError as e:
        raise http_error(e) from e
    except Exception as e:
        raise internal_error("verify payment", e, order_id=order_id) from e

    if outcome.requires_refund:
        logger.error(
            "Verified payment requires refund",
            extra={"order_id": order_id},
        )
    return outcome


@router.post("/{order_id}/payment/failure", response_model=Order)
async def report_payment_failure(
    order_id: str,
    request: PaymentFailureRequest,
    actor: Actor = Depends(get_actor),
    orchestrator: OrderOrchestrator = Depends(get_order_orchestrator),
) -> Order:
    try:
        return await orchestrator.report_payment_failure(
            order_id, request.reason, actor.user_id
        )
    except StorefrontError as e:
        raise http_error(e) from e
    except Exception as e:
        raise internal_error(
            "record payment failure", e, order_id=order_id
        ) from e


@router.post("/{order_id}/cancel", response_model=OrderOutcome)
async def cancel_order(
    order_id: str,
    request: CancelOrderRequest,
    actor: Actor = Depends(get_actor),
    orchestrator: OrderOrchestrator = Depends(get_order_orchestrator),
) -> OrderOutcome:
    logger.info(
        "Order cancellation requested via API",
        extra={"order_id": order_id, "reason": request.reason},
    )
    # buyer route: admins cancel through /admin
    buyer = Actor(user_id=actor.user_id, role="buyer")
    try:
        return await orchestrator.cancel_order(
            order_id, buyer, request.reason
        )
    except StorefrontError as e:
        raise http_error(e) from e
    except Exception as e:
        raise internal_error("cancel order", e, order_id=order_id) from e


@router.get("/{order_id}/invoice", response_model=Invoice)
async def get_order_invoice(
    order_id: str,
    actor: Actor = Depends(get_actor),
    use_case: GetInvoiceUseCase = Depends(get_invoice_use_case),
) -> Invoice:
    try:
        return await use_case.get_invoice_for_order(order_id, actor)
    except StorefrontError as e:
        raise http_error(e) from e
    except Exception as e:
        raise internal_error(
            "retrieve invoice", e, order_id=order_id
        ) from e
