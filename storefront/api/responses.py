"""
Pydantic models for API responses.
These define the contract between the API and external clients.
"""

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    status: str
    version: str


class RenderScheduledResponse(BaseModel):
    """Response for an invoice render request."""

    invoice_id: str
    status: str


class SweepResponse(BaseModel):
    """Response for a manual reservation sweep."""

    released: int
