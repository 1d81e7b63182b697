"""
Gateway webhook router.

Routes (mounted with the '/webhooks' prefix):
- POST /webhooks/payment - Server-to-server payment confirmation

The gateway may deliver the same event more than once and may race the
buyer's own verify call; both paths end in the same idempotent
verification, so a repeat comes back as ``already_processed``.
"""

import logging

from fastapi import APIRouter, Depends

from storefront.api.dependencies import get_order_orchestrator
from storefront.api.errors import http_error, internal_error
from storefront.domain import OrderOutcome, PaymentProof
from storefront.errors import StorefrontError
from storefront.usecase import OrderOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/payment", response_model=OrderOutcome)
async def payment_webhook(
    proof: PaymentProof,
    orchestrator: OrderOrchestrator = Depends(get_order_orchestrator),
) -> OrderOutcome:
    logger.info(
        "Payment webhook received",
        extra={
            "remote_order_id": proof.remote_order_id,
            "remote_payment_id": proof.remote_payment_id,
        },
    )
    try:
        outcome = await orchestrator.verify_payment_by_remote_order(proof)
    except StorefrontError as e:
        raise http_error(e) from e
    except Exception as e:
        raise internal_error(
            "process payment webhook",
            e,
            remote_order_id=proof.remote_order_id,
        ) from e

    if outcome.requires_refund:
        logger.error(
            "Webhook payment requires refund",
            extra={"order_id": outcome.order.order_id},
        )
    return outcome
