"""
FastAPI application for the storefront order core.

The API provides endpoints for:
- Buyer order placement, payment and cancellation
- Gateway payment webhooks
- Invoices
- Admin fulfilment, refunds and maintenance
- Health checks

Identity arrives in the X-User-Id and X-User-Role headers set by the
upstream auth gateway.
"""

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi_pagination import add_pagination
from fastapi_pagination.utils import disable_installed_extensions_check

from storefront import __version__
from storefront.api.routers import admin, invoices, orders, system, webhooks

# Disable pagination extensions check for cleaner startup
disable_installed_extensions_check()

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure logging based on environment variables"""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        print(f"Invalid log level: {log_level}, defaulting to INFO")
        numeric_level = logging.INFO

    log_format = os.environ.get(
        "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    logging.basicConfig(level=numeric_level, format=log_format, force=True)

    logging.getLogger("fastapi").setLevel(logging.INFO)
    logging.getLogger("uvicorn").setLevel(logging.INFO)


setup_logging()

app = FastAPI(
    title="Storefront Order API",
    description="Orders, payments, stock and GST invoices",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_ = add_pagination(app)

app.include_router(system.router, tags=["System"])
app.include_router(orders.router, prefix="/orders", tags=["Orders"])
app.include_router(invoices.router, prefix="/invoices", tags=["Invoices"])
app.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storefront.api.app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
