"""
Domain models defined as Pydantic models.
These are plain data structures with validation plus the small amount of
behaviour that belongs to the Order aggregate itself (reservation
bookkeeping and the status history trail).

All money fields are integer paise.
"""

import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING_PAYMENT = "PROCESSING_PAYMENT"
    PAID = "PAID"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    CONFIRMED = "CONFIRMED"
    PACKED = "PACKED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentMode(str, Enum):
    FULL_PAYMENT = "FULL_PAYMENT"
    COD_PARTIAL = "COD_PARTIAL"


class Actor(BaseModel):
    """Who is performing an operation.

    Identity comes from the upstream auth gateway; ``system`` is used by
    scheduled jobs and webhooks.
    """

    user_id: Optional[str] = None
    role: Literal["buyer", "admin", "system"] = "buyer"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# --- Order aggregate ---


PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")
PINCODE_PATTERN = re.compile(r"^\d{6}$")


class ShippingAddress(BaseModel):
    name: str
    phone: str
    address_line1: str
    address_line2: Optional[str] = None
    landmark: Optional[str] = None
    city: str
    state: str
    pincode: str

    @field_validator("name", "address_line1", "city", "state")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Address fields must not be blank")
        return v.strip()

    @field_validator("phone")
    @classmethod
    def phone_must_be_valid(cls, v: str) -> str:
        if not PHONE_PATTERN.match(v):
            raise ValueError("Phone must be a 10 digit mobile number")
        return v

    @field_validator("pincode")
    @classmethod
    def pincode_must_be_valid(cls, v: str) -> str:
        if not PINCODE_PATTERN.match(v):
            raise ValueError("Pincode must be 6 digits")
        return v


class OrderItem(BaseModel):
    """Point-in-time snapshot of a purchased catalog line."""

    product_id: str
    variant_id: Optional[str] = None
    name: str
    variant_name: Optional[str] = None
    sku: Optional[str] = None
    image: Optional[str] = None
    quantity: int
    price: int
    mrp: Optional[int] = None
    total: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be positive")
        return v

    @field_validator("price")
    @classmethod
    def price_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Price must be non-negative")
        return v

    @field_validator("total")
    @classmethod
    def total_must_match_price(cls, v: int, info) -> int:
        price = info.data.get("price")
        quantity = info.data.get("quantity")
        if price is not None and quantity is not None:
            if v != price * quantity:
                raise ValueError("Line total must equal price x quantity")
        return v

    @property
    def stock_key(self) -> tuple[str, Optional[str]]:
        return (self.product_id, self.variant_id)


class PaymentDetails(BaseModel):
    mode: PaymentMode = PaymentMode.FULL_PAYMENT
    amount_to_pay: int = 0
    remote_order_id: Optional[str] = None
    remote_payment_id: Optional[str] = None
    remote_signature: Optional[str] = None
    amount_paid: int = 0
    paid_at: Optional[datetime] = None
    cod_amount: int = 0
    cod_collected: bool = False
    cod_collected_at: Optional[datetime] = None
    refund_id: Optional[str] = None
    refund_status: Optional[Literal["pending", "processed", "failed"]] = (
        None
    )
    refunded_at: Optional[datetime] = None

    @property
    def captured(self) -> bool:
        return self.paid_at is not None and self.amount_paid > 0


class StatusHistoryEntry(BaseModel):
    status: OrderStatus
    timestamp: datetime
    actor: Optional[str] = None
    note: Optional[str] = None


class Cancellation(BaseModel):
    cancelled_at: datetime
    cancelled_by: Optional[str] = None
    reason: Optional[str] = None


class Order(BaseModel):
    order_id: str
    order_number: str
    user_id: str
    items: List[OrderItem]
    shipping_address: ShippingAddress
    subtotal: int
    total_amount: int
    payment: PaymentDetails = Field(default_factory=PaymentDetails)
    status: OrderStatus = OrderStatus.PENDING
    stock_reserved: bool = False
    stock_reserved_at: Optional[datetime] = None
    stock_reservation_expiry: Optional[datetime] = None
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    cancellation: Optional[Cancellation] = None
    invoice_id: Optional[str] = None
    requires_reconciliation: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(cls, v: List[OrderItem]) -> List[OrderItem]:
        if not v:
            raise ValueError("Order must contain at least one item")
        return v

    @field_validator("subtotal")
    @classmethod
    def subtotal_must_match_items(cls, v: int, info) -> int:
        items = info.data.get("items")
        if items and v != sum(item.total for item in items):
            raise ValueError("Subtotal must equal the sum of item totals")
        return v

    @field_validator("total_amount")
    @classmethod
    def total_amount_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Total amount must be positive")
        return v

    def reserve_stock(self, now: datetime, timeout_minutes: int) -> None:
        self.stock_reserved = True
        self.stock_reserved_at = now
        self.stock_reservation_expiry = now + timedelta(
            minutes=timeout_minutes
        )

    def release_stock_reservation(self) -> None:
        # flag and expiry always move together
        self.stock_reserved = False
        self.stock_reserved_at = None
        self.stock_reservation_expiry = None

    def is_stock_reservation_expired(self, now: datetime) -> bool:
        if not self.stock_reserved or self.stock_reservation_expiry is None:
            return False
        return now > self.stock_reservation_expiry

    def add_status_history(
        self,
        status: OrderStatus,
        at: datetime,
        actor: Optional[str] = None,
        note: Optional[str] = None,
    ) -> None:
        self.status_history.append(
            StatusHistoryEntry(
                status=status, timestamp=at, actor=actor, note=note
            )
        )
        self.updated_at = at


# --- Catalog (read-mostly collaborator) ---


class ProductVariant(BaseModel):
    variant_id: str
    name: str
    sku: Optional[str] = None
    sale_price: int
    mrp: Optional[int] = None
    stock: int = 0
    is_active: bool = True

    @field_validator("stock")
    @classmethod
    def stock_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Stock must be non-negative")
        return v


class Product(BaseModel):
    product_id: str
    name: str
    sku: Optional[str] = None
    sale_price: int
    mrp: Optional[int] = None
    stock: int = 0
    image: Optional[str] = None
    hsn_code: Optional[str] = None
    tax_rate: Optional[Decimal] = None
    is_active: bool = True
    has_variants: bool = False
    variants: List[ProductVariant] = Field(default_factory=list)

    @field_validator("stock")
    @classmethod
    def stock_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Stock must be non-negative")
        return v

    def find_variant(self, variant_id: str) -> Optional[ProductVariant]:
        for variant in self.variants:
            if variant.variant_id == variant_id:
                return variant
        return None

    def stock_for(self, variant_id: Optional[str]) -> int:
        if variant_id is None:
            return self.stock
        variant = self.find_variant(variant_id)
        return variant.stock if variant else 0


# --- Invoice ---


class InvoiceItem(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    name: str
    variant_name: Optional[str] = None
    sku: Optional[str] = None
    hsn_code: Optional[str] = None
    quantity: int
    unit_price: int
    taxable_amount: int
    gst_rate: Decimal
    cgst: int = 0
    sgst: int = 0
    igst: int = 0
    total_tax: int
    total_with_tax: int


class Invoice(BaseModel):
    invoice_id: str
    invoice_number: str
    order_id: str
    order_number: str
    user_id: str
    invoice_date: datetime
    billing_address: ShippingAddress
    shipping_address: ShippingAddress
    items: List[InvoiceItem]
    subtotal: int
    total_cgst: int = 0
    total_sgst: int = 0
    total_igst: int = 0
    total_tax: int
    grand_total: int
    is_intra_state: bool
    seller_state: str
    payment_mode: PaymentMode = PaymentMode.FULL_PAYMENT
    status: Literal["GENERATED", "RENDERED"] = "GENERATED"
    document_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[InvoiceItem]
    ) -> List[InvoiceItem]:
        if not v:
            raise ValueError("Invoice must contain at least one item")
        return v


class RenderedDocument(BaseModel):
    filename: str
    content_type: str = "text/html"
    content: str


# --- Requests ---


class OrderItemRequest(BaseModel):
    product_id: str
    variant_id: Optional[str] = None
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be positive")
        return v


class CreateOrderRequest(BaseModel):
    """Request model for placing an order."""

    items: List[OrderItemRequest]
    shipping_address: ShippingAddress
    payment_mode: PaymentMode = PaymentMode.FULL_PAYMENT

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[OrderItemRequest]
    ) -> List[OrderItemRequest]:
        if not v:
            raise ValueError("Order must contain at least one item")
        return v


class PaymentProof(BaseModel):
    """Callback data returned by the gateway checkout."""

    remote_order_id: str
    remote_payment_id: str
    signature: str


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    note: Optional[str] = None


class OrderQuery(BaseModel):
    user_id: Optional[str] = None
    status: Optional[OrderStatus] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None


# --- Gateway records ---


class RemoteOrder(BaseModel):
    remote_order_id: str
    amount: int
    currency: str
    receipt: Optional[str] = None
    status: Optional[str] = None


class RemotePayment(BaseModel):
    remote_payment_id: str
    remote_order_id: Optional[str] = None
    amount: int
    currency: Optional[str] = None
    status: str
    method: Optional[str] = None


class RemoteRefund(BaseModel):
    refund_id: str
    remote_payment_id: str
    amount: int
    status: str


# --- Operation outcomes ---


class CreatedOrder(BaseModel):
    order: Order
    amount_to_pay: int


class PaymentInitiation(BaseModel):
    order: Order
    remote_order_id: str
    amount: int
    currency: str
    key_id: str


class OrderOutcome(BaseModel):
    """Result of verify/cancel operations.

    ``requires_refund`` and ``requires_reconciliation`` carry the critical
    inconsistency signal instead of an exception.
    """

    order: Order
    success: bool = True
    already_processed: bool = False
    requires_refund: bool = False
    requires_reconciliation: bool = False
    message: Optional[str] = None
    invoice: Optional[Invoice] = None


class SweepResult(BaseModel):
    examined: int = 0
    released: int = 0
    conflicts: int = 0


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
