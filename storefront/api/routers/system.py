"""
System API router.

Routes defined at root level:
- GET /health - Health check endpoint
"""

import logging

from fastapi import APIRouter

from storefront import __version__
from storefront.api.responses import HealthCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    return HealthCheckResponse(status="healthy", version=__version__)
