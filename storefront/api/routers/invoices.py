"""
Invoice API router.

Routes (mounted with the '/invoices' prefix):
- GET /invoices - List invoices visible to the caller with pagination
- GET /invoices/{invoice_id} - Invoice details, including the document URL
"""

import logging
from typing import cast

from fastapi import APIRouter, Depends
from fastapi_pagination import Page, paginate

from storefront.api.dependencies import get_actor, get_invoice_use_case
from storefront.api.errors import http_error, internal_error
from storefront.domain import Actor, Invoice
from storefront.errors import StorefrontError
from storefront.invoicing import GetInvoiceUseCase

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=Page[Invoice])
async def list_invoices(
    actor: Actor = Depends(get_actor),
    use_case: GetInvoiceUseCase = Depends(get_invoice_use_case),
) -> Page[Invoice]:
    """
    Get a paginated list of invoices.

    Buyers see their own invoices; admins see all of them.
    """
    logger.info("Invoices requested", extra={"user_id": actor.user_id})
    try:
        invoices = await use_case.list_invoices(actor)
    except Exception as e:
        raise internal_error(
            "retrieve invoices", e, user_id=actor.user_id
        ) from e

    logger.info(
        "Invoices retrieved successfully", extra={"count": len(invoices)}
    )
    return cast(Page[Invoice], paginate(invoices))


@router.get("/{invoice_id}", response_model=Invoice)
async def get_invoice(
    invoice_id: str,
    actor: Actor = Depends(get_actor),
    use_case: GetInvoiceUseCase = Depends(get_invoice_use_case),
) -> Invoice:
    try:
        return await use_case.get_invoice(invoice_id, actor)
    except StorefrontError as e:
        raise http_error(e) from e
    except Exception as e:
        raise internal_error(
            "retrieve invoice", e, invoice_id=invoice_id
        ) from e
