"""
Immutable store configuration.

Business logic never reads the environment. The API container, worker and
CLI build a StoreConfig once (usually via ``StoreConfig.from_env()``) and
pass it into the services that need it.
"""

import os
from decimal import Decimal
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StoreConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    seller_state: str = Field(
        "Gujarat", description="State the seller is GST-registered in"
    )
    default_tax_rate: Decimal = Field(
        Decimal("18"),
        description="GST rate applied when a product carries none",
    )
    cod_partial_percentage: Decimal = Field(
        Decimal("30"),
        description="Share of the subtotal paid online for COD_PARTIAL",
    )
    reservation_timeout_minutes: int = Field(
        15, description="Lifetime of an advisory stock reservation"
    )
    seller_name: str = "Storefront Retail"
    seller_gstin: Optional[str] = None
    currency: str = "INR"
    gateway_base_url: str = "https://api.razorpay.com/v1"
    gateway_key_id: str = ""
    gateway_key_secret: str = ""
    gateway_timeout_seconds: float = 10.0
    invoice_folder: str = "invoices"

    @field_validator("cod_partial_percentage")
    @classmethod
    def percentage_must_be_in_range(cls, v: Decimal) -> Decimal:
        if v <= 0 or v >= 100:
            raise ValueError(
                "COD partial percentage must be between 0 and 100"
            )
        return v

    @field_validator("default_tax_rate")
    @classmethod
    def tax_rate_must_be_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Tax rate must be non-negative")
        return v

    @field_validator("reservation_timeout_minutes")
    @classmethod
    def timeout_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Reservation timeout must be positive")
        return v

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "StoreConfig":
        """Build a configuration from environment variables.

        Unset variables fall back to the field defaults.
        """
        env = os.environ if environ is None else environ
        mapping = {
            "seller_state": "SELLER_STATE",
            "seller_name": "SELLER_NAME",
            "seller_gstin": "SELLER_GSTIN",
            "default_tax_rate": "DEFAULT_GST_RATE",
            "cod_partial_percentage": "COD_PARTIAL_PAYMENT_PERCENTAGE",
            "reservation_timeout_minutes": (
                "STOCK_RESERVATION_TIMEOUT_MINUTES"
            ),
            "gateway_base_url": "RAZORPAY_BASE_URL",
            "gateway_key_id": "RAZORPAY_KEY_ID",
            "gateway_key_secret": "RAZORPAY_KEY_SECRET",
            "gateway_timeout_seconds": "PAYMENT_GATEWAY_TIMEOUT",
            "invoice_folder": "INVOICE_FOLDER",
        }
        values = {
            field: env[var] for field, var in mapping.items() if env.get(var)
        }
        return cls(**values)
