"""
Pydantic models for API requests.
These define the contract between the API and external clients.

Order placement, payment proofs and status updates use the domain request
models directly; this module only holds bodies specific to the API.
"""

from typing import Optional

from pydantic import BaseModel


class CancelOrderRequest(BaseModel):
    """Request model for cancelling an order."""

    reason: Optional[str] = None


class PaymentFailureRequest(BaseModel):
    reason: Optional[str] = None


class RefundRequest(BaseModel):
    reason: Optional[str] = None
