"""HTTP adapter for the Razorpay-style payment gateway.

Implements the ``PaymentGateway`` protocol using ``httpx``:

- HTTP basic auth with the key id / key secret pair.
- Amounts travel in paise, the gateway's minor unit.
- Idempotent reads (payment lookup) are retried with exponential backoff
  on transport errors and 5xx responses. Writes are attempted once; a
  failed order creation leaves the order payable and the buyer retries.
- Checkout signatures are verified locally with HMAC-SHA256 and a
  constant-time comparison.
"""

import asyncio
import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

import httpx

from storefront.domain import RemoteOrder, RemotePayment, RemoteRefund
from storefront.errors import PaymentGatewayError
from storefront.repositories import PaymentGateway

logger = logging.getLogger(__name__)

MAX_RECEIPT_LENGTH = 40


def compute_signature(
    secret: str, remote_order_id: str, remote_payment_id: str
) -> str:
    """HMAC-SHA256 hex digest of ``"<order_id>|<payment_id>"``."""
    message = f"{remote_order_id}|{remote_payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class HttpPaymentGateway(PaymentGateway):
    """Payment gateway client with retry for idempotent calls."""

    def __init__(
        self,
        base_url: str,
        key_id: str,
        key_secret: str,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 0.2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.key_id = key_id
        self._key_secret = key_secret
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.key_id, self._key_secret),
            timeout=self.timeout,
            transport=self._transport,
        )

    @staticmethod
    def _error_description(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("description"):
            return str(error["description"])
        return response.text[:200]

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        retry: bool = False,
    ) -> Dict[str, Any]:
        attempts = self.max_retries + 1 if retry else 1
        last_error: Optional[Exception] = None

        async with self._client() as client:
            for attempt in range(attempts):
                try:
                    response = await client.request(method, path, json=json)
                except httpx.HTTPError as e:
                    last_error = e
                    logger.warning(
                        "Payment gateway transport error",
                        extra={
                            "method": method,
                            "path": path,
                            "attempt": attempt + 1,
                            "error_type": type(e).__name__,
                        },
                    )
                else:
                    if response.status_code < 400:
                        return response.json()  # type: ignore[no-any-return]
                    description = self._error_description(response)
                    if response.status_code < 500 or attempt + 1 == attempts:
                        logger.error(
                            "Payment gateway rejected request",
                            extra={
                                "method": method,
                                "path": path,
                                "status_code": response.status_code,
                                "description": description,
                            },
                        )
                        raise PaymentGatewayError(
                            f"Gateway returned {response.status_code}: "
                            f"{description}",
                            status_code=response.status_code,
                        )
                    last_error = PaymentGatewayError(
                        description, status_code=response.status_code
                    )
                if attempt + 1 < attempts:
                    await asyncio.sleep(self.backoff_base * (2**attempt))

        raise PaymentGatewayError(
            f"Payment gateway unreachable: {last_error}"
        ) from last_error

    async def create_remote_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: Dict[str, str],
    ) -> RemoteOrder:
        if amount <= 0:
            raise PaymentGatewayError("Amount must be positive")
        if not currency:
            raise PaymentGatewayError("Currency is required")
        if not receipt or len(receipt) > MAX_RECEIPT_LENGTH:
            raise PaymentGatewayError(
                f"Receipt must be 1-{MAX_RECEIPT_LENGTH} characters"
            )

        logger.info(
            "Creating remote payment order",
            extra={"receipt": receipt, "amount": amount, "currency": currency},
        )
        body = await self._request(
            "POST",
            "/orders",
            json={
                "amount": amount,
                "currency": currency,
                "receipt": receipt,
                "notes": notes,
            },
        )
        remote = RemoteOrder(
            remote_order_id=body["id"],
            amount=int(body.get("amount", amount)),
            currency=body.get("currency", currency),
            receipt=body.get("receipt", receipt),
            status=body.get("status"),
        )
        logger.info(
            "Remote payment order created",
            extra={
                "receipt": receipt,
                "remote_order_id": remote.remote_order_id,
            },
        )
        return remote

    def verify_signature(
        self, remote_order_id: str, remote_payment_id: str, signature: str
    ) -> bool:
        if not (
            remote_order_id
            and remote_payment_id
            and signature
            and self._key_secret
        ):
            logger.warning(
                "Signature verification skipped: missing parts",
                extra={"remote_order_id": remote_order_id},
            )
            return False
        expected = compute_signature(
            self._key_secret, remote_order_id, remote_payment_id
        )
        valid = hmac.compare_digest(expected.encode(), signature.encode())
        if not valid:
            logger.warning(
                "Payment signature mismatch",
                extra={
                    "remote_order_id": remote_order_id,
                    "remote_payment_id": remote_payment_id,
                },
            )
        return valid

    async def fetch_payment(self, remote_payment_id: str) -> RemotePayment:
        body = await self._request(
            "GET", f"/payments/{remote_payment_id}", retry=True
        )
        return RemotePayment(
            remote_payment_id=body["id"],
            remote_order_id=body.get("order_id"),
            amount=int(body["amount"]),
            currency=body.get("currency"),
            status=body["status"],
            method=body.get("method"),
        )

    async def create_refund(
        self, remote_payment_id: str, amount: int, notes: Dict[str, str]
    ) -> RemoteRefund:
        if amount <= 0:
            raise PaymentGatewayError("Refund amount must be positive")
        logger.info(
            "Requesting refund",
            extra={"remote_payment_id": remote_payment_id, "amount": amount},
        )
        body = await self._request(
            "POST",
            f"/payments/{remote_payment_id}/refund",
            json={"amount": amount, "notes": notes},
        )
        return RemoteRefund(
            refund_id=body["id"],
            remote_payment_id=body.get("payment_id", remote_payment_id),
            amount=int(body.get("amount", amount)),
            status=body.get("status", "pending"),
        )
