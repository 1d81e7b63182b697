"""
Defines the use cases for the order lifecycle.

OrderOrchestrator ties the order state machine, the stock ledger, the
payment gateway and the invoice generator together. Every order write is
conditional on the status read at the start of the operation, so two
handlers racing on the same order cannot both win.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .config import StoreConfig
from .domain import (
    Actor,
    Clock,
    CreateOrderRequest,
    CreatedOrder,
    Invoice,
    Order,
    OrderItem,
    OrderOutcome,
    OrderQuery,
    OrderStatus,
    PaymentDetails,
    PaymentInitiation,
    PaymentMode,
    PaymentProof,
    Product,
    StatusUpdateRequest,
    SweepResult,
    utc_now,
)
from .errors import (
    AccessDenied,
    ConcurrencyConflict,
    InsufficientStock,
    InvalidTransition,
    NumberCollision,
    OrderNotFound,
    OrderValidationError,
    PaymentGatewayError,
    PreconditionFailed,
    ProductUnavailable,
    ReservationExpired,
    VariantUnavailable,
)
from .invoicing import InvoiceGenerator
from .money import format_rupees, percentage_of
from .repositories import (
    CatalogRepository,
    NotificationService,
    OrderRepository,
    PaymentGateway,
)
from .state_machine import (
    ADMIN_PROGRESSION_TARGETS,
    STOCK_DEDUCTED_STATES,
    can_cancel,
    transition,
)
from .stock import StockLedger
from .validation import (
    ensure_notification_service,
    ensure_order_repository,
    ensure_payment_gateway,
)

logger = logging.getLogger(__name__)

NUMBER_ATTEMPTS = 5

# Payment has been captured and not yet handed to a courier for delivery.
REFUND_ON_CANCEL_STATES = frozenset(
    {
        OrderStatus.PAID,
        OrderStatus.CONFIRMED,
        OrderStatus.PACKED,
        OrderStatus.SHIPPED,
    }
)

PAYABLE_STATES = frozenset({OrderStatus.PENDING, OrderStatus.PAYMENT_FAILED})


class ReservationSweeper:
    """
    Releases advisory stock reservations that outlived their expiry.

    Only PENDING and PAYMENT_FAILED orders are swept; an order in
    PROCESSING_PAYMENT keeps its reservation until the payment outcome is
    known. The status is unchanged; a history entry records the release.
    Used in-process by the orchestrator and inside ReservationSweepWorkflow
    with an activity proxy as the repository.
    """

    def __init__(self, order_repo: OrderRepository) -> None:
        self.order_repo = ensure_order_repository(order_repo)

    async def sweep(self, now: datetime) -> SweepResult:
        result = SweepResult()
        expired = await self.order_repo.find_expired_reservations(now)
        for order in expired:
            result.examined += 1
            expected = order.status
            order.release_stock_reservation()
            order.add_status_history(
                order.status, now, note="Stock reservation expired"
            )
            try:
                await self.order_repo.save_order(order, expected)
            except ConcurrencyConflict:
                # the order moved on (paid, cancelled) since it was read
                result.conflicts += 1
                logger.info(
                    "Skipped reservation release, order changed",
                    extra={"order_id": order.order_id},
                )
                continue
            result.released += 1

        logger.info(
            "Expired reservations swept",
            extra={
                "examined": result.examined,
                "released": result.released,
                "conflicts": result.conflicts,
            },
        )
        return result


class OrderOrchestrator:
    """
    Orchestrates the order lifecycle from placement to delivery.

    This use case depends on repository and gateway protocols rather than
    concrete implementations. Notification is fire-and-forget and invoice
    generation after payment is best-effort: neither failure ever undoes a
    verified payment.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        catalog_repo: CatalogRepository,
        payment_gateway: PaymentGateway,
        notification_service: NotificationService,
        config: StoreConfig,
        invoice_generator: Optional[InvoiceGenerator] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.order_repo = ensure_order_repository(order_repo)
        self.payment_gateway = ensure_payment_gateway(payment_gateway)
        self.notification_service = ensure_notification_service(
            notification_service
        )
        self.config = config
        self.stock = StockLedger(catalog_repo, order_repo, config)
        self.catalog_repo = self.stock.catalog_repo
        self.invoice_generator = invoice_generator
        self.sweeper = ReservationSweeper(order_repo)
        self.clock = clock

    # --- helpers ---

    async def _load_order(self, order_id: str) -> Order:
        order = await self.order_repo.get_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order  # type: ignore[no-any-return]

    async def _load_owned(self, order_id: str, actor: Actor) -> Order:
        order = await self._load_order(order_id)
        if not actor.is_admin and order.user_id != actor.user_id:
            logger.warning(
                "Order access denied",
                extra={"order_id": order_id, "user_id": actor.user_id},
            )
            raise AccessDenied(f"Order {order_id} belongs to another user")
        return order

    async def _notify(
        self, order: Order, event_type: str, **payload: Any
    ) -> None:
        data: Dict[str, Any] = {
            "order_id": order.order_id,
            "order_number": order.order_number,
            "status": order.status.value,
        }
        data.update(payload)
        try:
            await self.notification_service.notify(
                order.user_id, event_type, data
            )
        except Exception as e:
            logger.warning(
                "Failed to send order notification",
                extra={
                    "order_id": order.order_id,
                    "event_type": event_type,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )

    async def _ensure_invoice(self, order: Order) -> Optional[Invoice]:
        if self.invoice_generator is None:
            return None
        try:
            invoice = await self.invoice_generator.generate(order.order_id)
        except Exception as e:
            logger.error(
                "Invoice generation failed, it can be generated later",
                extra={
                    "order_id": order.order_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            return None

        if order.invoice_id != invoice.invoice_id:
            order.invoice_id = invoice.invoice_id
            try:
                await self.order_repo.save_order(order, order.status)
            except ConcurrencyConflict:
                logger.info(
                    "Order changed before invoice link was saved",
                    extra={
                        "order_id": order.order_id,
                        "invoice_id": invoice.invoice_id,
                    },
                )
        return invoice

    async def _snapshot_items(
        self, request: CreateOrderRequest
    ) -> tuple[List[OrderItem], Dict[str, Product]]:
        items: List[OrderItem] = []
        products: Dict[str, Product] = {}
        for line in request.items:
            product = products.get(line.product_id)
            if product is None:
                product = await self.catalog_repo.get_product(line.product_id)
            if product is None or not product.is_active:
                raise ProductUnavailable(line.product_id)
            products[product.product_id] = product

            if line.variant_id is not None:
                variant = product.find_variant(line.variant_id)
                if variant is None or not variant.is_active:
                    raise VariantUnavailable(
                        line.product_id, line.variant_id
                    )
                price, mrp = variant.sale_price, variant.mrp
                variant_name, sku = variant.name, variant.sku or product.sku
            elif product.has_variants:
                raise OrderValidationError(
                    f"Product {product.product_id} requires a variant"
                )
            else:
                price, mrp = product.sale_price, product.mrp
                variant_name, sku = None, product.sku

            items.append(
                OrderItem(
                    product_id=product.product_id,
                    variant_id=line.variant_id,
                    name=product.name,
                    variant_name=variant_name,
                    sku=sku,
                    image=product.image,
                    quantity=line.quantity,
                    price=price,
                    mrp=mrp,
                    total=price * line.quantity,
                )
            )
        return items, products

    def _payment_split(self, mode: PaymentMode, subtotal: int) -> PaymentDetails:
        if mode == PaymentMode.COD_PARTIAL:
            upfront = percentage_of(
                subtotal, self.config.cod_partial_percentage
            )
            return PaymentDetails(
                mode=mode,
                amount_to_pay=upfront,
                cod_amount=subtotal - upfront,
            )
        return PaymentDetails(mode=mode, amount_to_pay=subtotal)

    # --- buyer operations ---

    async def create_order(
        self, user_id: str, request: CreateOrderRequest
    ) -> CreatedOrder:
        """
        Place an order and reserve its stock.

        1. Snapshots every line from the catalog (active product/variant).
        2. Checks availability, counting the buyer's open reservations.
        3. Computes the amount payable now (full or COD partial).
        4. Persists the PENDING order under a fresh daily number.
        """
        if not user_id:
            raise OrderValidationError("A buyer is required to place an order")

        now = self.clock()
        items, products = await self._snapshot_items(request)
        await self.stock.check_availability(
            items, now, buyer_id=user_id, products=products
        )

        subtotal = sum(item.total for item in items)
        if subtotal <= 0:
            raise OrderValidationError("Order total must be positive")
        payment = self._payment_split(request.payment_mode, subtotal)

        order_id = await self.order_repo.generate_order_id()
        for attempt in range(NUMBER_ATTEMPTS):
            number = await self.order_repo.generate_order_number(now.date())
            order = Order(
                order_id=order_id,
                order_number=number,
                user_id=user_id,
                items=items,
                shipping_address=request.shipping_address,
                subtotal=subtotal,
                total_amount=subtotal,
                payment=payment.model_copy(),
                status=OrderStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            self.stock.reserve(order, now)
            order.add_status_history(
                OrderStatus.PENDING,
                now,
                actor=user_id,
                note="Order created, stock reserved",
            )
            try:
                await self.order_repo.create_order(order)
                break
            except NumberCollision:
                logger.info(
                    "Order number taken, deriving a new one",
                    extra={"order_number": number, "attempt": attempt + 1},
                )
        else:
            raise NumberCollision(
                f"Could not allocate an order number for {order_id}"
            )

        logger.info(
            "Order created",
            extra={
                "order_id": order.order_id,
                "order_number": order.order_number,
                "user_id": user_id,
                "subtotal": subtotal,
                "payment_mode": payment.mode.value,
                "amount_to_pay": payment.amount_to_pay,
            },
        )
        await self._notify(
            order, "ORDER_CREATED", amount_to_pay=payment.amount_to_pay
        )
        return CreatedOrder(order=order, amount_to_pay=payment.amount_to_pay)

    async def initiate_payment(
        self, order_id: str, user_id: str
    ) -> PaymentInitiation:
        """
        Open a gateway payment for a PENDING or PAYMENT_FAILED order.

        Raises:
            ReservationExpired: The reservation lapsed; it has been released.
                The order stays payable: the next call re-checks availability
                and reserves again
            PaymentGatewayError: The gateway refused, was unreachable or
                registered a different amount; the order is left as it was
        """
        order = await self._load_owned(order_id, Actor(user_id=user_id))
        if order.status not in PAYABLE_STATES:
            raise InvalidTransition(
                order.status.value, OrderStatus.PROCESSING_PAYMENT.value
            )

        now = self.clock()
        expected = order.status

        if order.is_stock_reservation_expired(now):
            self.stock.release(order)
            order.add_status_history(
                order.status, now, note="Stock reservation expired"
            )
            await self.order_repo.save_order(order, expected)
            logger.info(
                "Payment refused, reservation expired",
                extra={"order_id": order_id},
            )
            raise ReservationExpired(order_id)

        if not order.stock_reserved:
            # released by a reported payment failure or the sweep
            await self.stock.check_availability(
                order.items, now, buyer_id=order.user_id
            )
            self.stock.reserve(order, now)

        if order.status == OrderStatus.PAYMENT_FAILED:
            transition(
                order, OrderStatus.PENDING, now, user_id, "Payment retried"
            )

        amount = order.payment.amount_to_pay
        remote = await self.payment_gateway.create_remote_order(
            amount,
            self.config.currency,
            order.order_number,
            {
                "order_id": order.order_id,
                "order_number": order.order_number,
                "payment_mode": order.payment.mode.value,
            },
        )
        if remote.amount != amount:
            logger.error(
                "Gateway registered a different amount",
                extra={
                    "order_id": order_id,
                    "remote_order_id": remote.remote_order_id,
                    "amount": amount,
                    "registered_amount": remote.amount,
                },
            )
            raise PaymentGatewayError(
                f"Gateway registered {remote.amount} paise for order "
                f"{order.order_number}, expected {amount}"
            )

        order.payment.remote_order_id = remote.remote_order_id
        transition(
            order,
            OrderStatus.PROCESSING_PAYMENT,
            now,
            user_id,
            "Payment order created",
        )
        await self.order_repo.save_order(order, expected)

        logger.info(
            "Payment initiated",
            extra={
                "order_id": order_id,
                "remote_order_id": remote.remote_order_id,
                "amount": amount,
            },
        )
        return PaymentInitiation(
            order=order,
            remote_order_id=remote.remote_order_id,
            amount=amount,
            currency=self.config.currency,
            key_id=self.config.gateway_key_id,
        )

    async def verify_payment(
        self,
        order_id: str,
        proof: PaymentProof,
        user_id: Optional[str] = None,
    ) -> OrderOutcome:
        """
        Verify a checkout callback and complete the order.

        Calling this again for an order that has already left
        PROCESSING_PAYMENT, or whose capture is already recorded, is
        harmless and returns ``already_processed``.
        A captured payment that cannot be matched with stock is reported
        through ``requires_refund`` rather than raised.
        """
        order = await self._load_order(order_id)
        if user_id is not None and order.user_id != user_id:
            raise AccessDenied(f"Order {order_id} belongs to another user")

        if order.status != OrderStatus.PROCESSING_PAYMENT:
            return OrderOutcome(
                order=order,
                success=order.status in STOCK_DEDUCTED_STATES,
                already_processed=True,
                message=f"Order is already {order.status.value}",
            )

        if (
            order.requires_reconciliation
            or order.payment.remote_payment_id is not None
        ):
            # a capture was already recorded; never deduct for it twice
            return OrderOutcome(
                order=order,
                success=False,
                already_processed=True,
                requires_refund=order.payment.refund_id is None,
                requires_reconciliation=order.requires_reconciliation,
                message="Payment is awaiting reconciliation",
            )

        now = self.clock()
        expected = OrderStatus.PROCESSING_PAYMENT

        # 1. Signature, bound to the remote order we created
        valid = proof.remote_order_id == order.payment.remote_order_id and (
            self.payment_gateway.verify_signature(
                proof.remote_order_id,
                proof.remote_payment_id,
                proof.signature,
            )
        )
        if not valid:
            transition(
                order,
                OrderStatus.PAYMENT_FAILED,
                now,
                user_id,
                "Payment signature verification failed",
            )
            await self.order_repo.save_order(order, expected)
            logger.warning(
                "Payment verification failed",
                extra={
                    "order_id": order_id,
                    "remote_order_id": proof.remote_order_id,
                },
            )
            await self._notify(order, "PAYMENT_FAILED")
            return OrderOutcome(
                order=order,
                success=False,
                message="Payment verification failed",
            )

        # 2. Record the capture
        order.payment.remote_payment_id = proof.remote_payment_id
        order.payment.remote_signature = proof.signature
        order.payment.amount_paid = (
            order.total_amount - order.payment.cod_amount
        )
        order.payment.paid_at = now

        # 3. Authoritative stock deduction
        try:
            await self.stock.deduct(order.items)
        except InsufficientStock as e:
            order.requires_reconciliation = True
            order.add_status_history(
                order.status,
                now,
                actor=user_id,
                note=f"Payment captured but stock unavailable: {e}",
            )
            await self.order_repo.save_order(order, expected)
            logger.error(
                "Payment captured without stock, order needs reconciliation",
                extra={
                    "order_id": order_id,
                    "remote_payment_id": proof.remote_payment_id,
                    "product_id": e.product_id,
                    "variant_id": e.variant_id,
                },
            )
            return OrderOutcome(
                order=order,
                success=False,
                requires_refund=True,
                requires_reconciliation=True,
                message=str(e),
            )

        # 4. PAID
        order.requires_reconciliation = False
        self.stock.release(order)
        transition(
            order,
            OrderStatus.PAID,
            now,
            user_id,
            "Payment verified and stock deducted",
        )
        try:
            await self.order_repo.save_order(order, expected)
        except ConcurrencyConflict:
            # a concurrent verification won; give the stock back
            await self.stock.restore(order.items)
            current = await self._load_order(order_id)
            logger.info(
                "Payment already processed by a concurrent request",
                extra={"order_id": order_id, "status": current.status.value},
            )
            return OrderOutcome(
                order=current,
                success=current.status in STOCK_DEDUCTED_STATES,
                already_processed=True,
                message=f"Order is already {current.status.value}",
            )

        logger.info(
            "Payment verified",
            extra={
                "order_id": order_id,
                "remote_payment_id": proof.remote_payment_id,
                "amount_paid": order.payment.amount_paid,
            },
        )

        # 5. Best-effort follow-ups
        invoice = await self._ensure_invoice(order)
        await self._notify(
            order, "PAYMENT_SUCCESS", amount_paid=order.payment.amount_paid
        )
        return OrderOutcome(
            order=order, invoice=invoice, message="Payment verified"
        )

    async def verify_payment_by_remote_order(
        self, proof: PaymentProof
    ) -> OrderOutcome:
        """Webhook entry point: resolve the order from the gateway id."""
        order = await self.order_repo.get_order_by_remote_order_id(
            proof.remote_order_id
        )
        if order is None:
            raise OrderNotFound(proof.remote_order_id)
        return await self.verify_payment(order.order_id, proof)

    async def report_payment_failure(
        self,
        order_id: str,
        reason: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Order:
        """Record a checkout failure and release the reservation."""
        order = await self._load_order(order_id)
        if user_id is not None and order.user_id != user_id:
            raise AccessDenied(f"Order {order_id} belongs to another user")

        now = self.clock()
        expected = order.status
        transition(
            order,
            OrderStatus.PAYMENT_FAILED,
            now,
            user_id,
            reason or "Payment failed",
        )
        self.stock.release(order)
        await self.order_repo.save_order(order, expected)
        logger.info(
            "Payment failure recorded",
            extra={"order_id": order_id, "reason": reason},
        )
        await self._notify(order, "PAYMENT_FAILED", reason=reason)
        return order

    async def cancel_order(
        self, order_id: str, actor: Actor, reason: Optional[str] = None
    ) -> OrderOutcome:
        """
        Cancel an order as its buyer or as an admin.

        Deducted stock is restored; an advisory reservation is just
        dropped. ``requires_refund`` is set when money had been captured.
        """
        order = await self._load_owned(order_id, actor)
        if not can_cancel(order.status, actor.is_admin):
            raise InvalidTransition(
                order.status.value, OrderStatus.CANCELLED.value
            )

        now = self.clock()
        expected = order.status
        deducted = expected in STOCK_DEDUCTED_STATES
        requires_refund = (
            expected in REFUND_ON_CANCEL_STATES or order.payment.captured
        )

        self.stock.release(order)
        transition(
            order,
            OrderStatus.CANCELLED,
            now,
            actor.user_id,
            reason or "Order cancelled",
            by_admin=actor.is_admin,
        )
        await self.order_repo.save_order(order, expected)

        if deducted:
            await self.stock.restore(order.items)

        logger.info(
            "Order cancelled",
            extra={
                "order_id": order_id,
                "previous_status": expected.value,
                "by_admin": actor.is_admin,
                "requires_refund": requires_refund,
            },
        )
        await self._notify(order, "CANCELLED", reason=reason)
        return OrderOutcome(
            order=order,
            requires_refund=requires_refund,
            message=(
                "Order cancelled. Refund will be processed."
                if requires_refund
                else "Order cancelled"
            ),
        )

    # --- admin operations ---

    @staticmethod
    def _require_admin(actor: Actor) -> None:
        if not actor.is_admin:
            raise AccessDenied("Admin role required")

    async def update_status(
        self, order_id: str, actor: Actor, request: StatusUpdateRequest
    ) -> Order:
        """Move a paid order along fulfilment (admin only)."""
        self._require_admin(actor)
        if request.status not in ADMIN_PROGRESSION_TARGETS:
            raise OrderValidationError(
                f"Status {request.status.value} cannot be set directly"
            )
        if request.status == OrderStatus.SHIPPED and not (
            request.tracking_number and request.tracking_number.strip()
        ):
            raise OrderValidationError(
                "Tracking number required for shipping"
            )

        order = await self._load_order(order_id)
        now = self.clock()
        expected = order.status
        transition(order, request.status, now, actor.user_id, request.note)
        if request.tracking_number:
            order.tracking_number = request.tracking_number.strip()
        if request.tracking_url:
            order.tracking_url = request.tracking_url
        await self.order_repo.save_order(order, expected)

        logger.info(
            "Order status updated",
            extra={
                "order_id": order_id,
                "from_status": expected.value,
                "to_status": request.status.value,
            },
        )
        await self._notify(
            order,
            request.status.value,
            tracking_number=order.tracking_number,
            tracking_url=order.tracking_url,
        )
        if order.invoice_id is None:
            await self._ensure_invoice(order)
        return order

    async def mark_cod_collected(self, order_id: str, actor: Actor) -> Order:
        """Record collection of the cash-on-delivery remainder."""
        self._require_admin(actor)
        order = await self._load_order(order_id)
        if order.payment.mode != PaymentMode.COD_PARTIAL:
            raise PreconditionFailed(f"Order {order_id} is not a COD order")
        if order.payment.cod_collected:
            raise PreconditionFailed(
                f"COD for order {order_id} already collected"
            )
        if order.status not in STOCK_DEDUCTED_STATES:
            raise PreconditionFailed(
                f"Order {order_id} has not been paid upfront"
            )

        now = self.clock()
        expected = order.status
        order.payment.cod_collected = True
        order.payment.cod_collected_at = now
        order.add_status_history(
            order.status,
            now,
            actor=actor.user_id,
            note=(
                f"COD amount {format_rupees(order.payment.cod_amount)} "
                "collected"
            ),
        )
        await self.order_repo.save_order(order, expected)
        logger.info(
            "COD collected",
            extra={
                "order_id": order_id,
                "cod_amount": order.payment.cod_amount,
            },
        )
        return order

    async def refund_order(
        self, order_id: str, actor: Actor, reason: Optional[str] = None
    ) -> Order:
        """
        Refund the captured upfront payment through the gateway.

        Only for cancelled orders or orders flagged for reconciliation,
        and only once. A flagged order still in PROCESSING_PAYMENT is
        cancelled along with the refund.
        """
        self._require_admin(actor)
        order = await self._load_order(order_id)
        if not order.payment.captured or not order.payment.remote_payment_id:
            raise PreconditionFailed(
                f"Order {order_id} has no captured payment"
            )
        if not (
            order.status == OrderStatus.CANCELLED
            or order.requires_reconciliation
        ):
            raise PreconditionFailed(
                f"Order {order_id} must be cancelled or under reconciliation "
                "before a refund"
            )
        if order.payment.refund_id is not None:
            raise PreconditionFailed(
                f"Order {order_id} has already been refunded"
            )

        expected = order.status
        refund = await self.payment_gateway.create_refund(
            order.payment.remote_payment_id,
            order.payment.amount_paid,
            {
                "order_id": order.order_id,
                "order_number": order.order_number,
                "reason": reason or "Order refund",
            },
        )

        now = self.clock()
        order.payment.refund_id = refund.refund_id
        order.payment.refund_status = (
            "processed" if refund.status == "processed" else "pending"
        )
        order.payment.refunded_at = now
        order.add_status_history(
            order.status,
            now,
            actor=actor.user_id,
            note=(
                f"Refund {refund.refund_id} of "
                f"{format_rupees(refund.amount)} requested"
            ),
        )
        if order.status == OrderStatus.PROCESSING_PAYMENT:
            # a reconciliation order ends cancelled once refunded
            self.stock.release(order)
            transition(
                order,
                OrderStatus.CANCELLED,
                now,
                actor.user_id,
                reason or "Refunded, stock unavailable",
                by_admin=True,
            )
        await self.order_repo.save_order(order, expected)
        logger.info(
            "Refund requested",
            extra={
                "order_id": order_id,
                "refund_id": refund.refund_id,
                "amount": refund.amount,
            },
        )
        await self._notify(order, "REFUND_INITIATED", amount=refund.amount)
        return order

    # --- queries and maintenance ---

    async def get_order(self, order_id: str, actor: Actor) -> Order:
        return await self._load_owned(order_id, actor)

    async def list_orders(self, query: OrderQuery) -> List[Order]:
        return await self.order_repo.list_orders(query)  # type: ignore[no-any-return]

    async def cleanup_expired_reservations(self) -> int:
        """Release expired reservations; returns how many were released."""
        result = await self.sweeper.sweep(self.clock())
        return result.released
