"""
Tests for HttpPaymentGateway against an ``httpx.MockTransport``.
"""

import base64
import hashlib
import hmac
import json
from typing import List

import httpx
import pytest

from storefront.errors import PaymentGatewayError
from storefront.repos.http.payment_gateway import (
    HttpPaymentGateway,
    compute_signature,
)
from storefront.tests.fakes import (
    GATEWAY_URL,
    KEY_ID,
    KEY_SECRET,
    FakeGatewayServer,
)


def make_gateway(handler, **kwargs) -> HttpPaymentGateway:
    return HttpPaymentGateway(
        base_url=GATEWAY_URL,
        key_id=KEY_ID,
        key_secret=KEY_SECRET,
        backoff_base=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class Flaky:
    """Returns the queued statuses in turn, then a captured payment."""

    def __init__(self, *statuses: int) -> None:
        self.statuses: List[int] = list(statuses)
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.statuses:
            status = self.statuses.pop(0)
            return httpx.Response(
                status, json={"error": {"description": f"status {status}"}}
            )
        return httpx.Response(
            200,
            json={
                "id": "pay_1",
                "order_id": "order_rm_1",
                "amount": 50000,
                "status": "captured",
            },
        )


class TestCreateRemoteOrder:
    @pytest.mark.asyncio
    async def test_posts_order_with_basic_auth(self) -> None:
        server = FakeGatewayServer()
        gateway = make_gateway(server)

        remote = await gateway.create_remote_order(
            125000, "INR", "ORD-20240315-001", {"order_id": "o-1"}
        )

        assert remote.remote_order_id == "order_rm_1"
        assert remote.amount == 125000
        assert remote.receipt == "ORD-20240315-001"

        request = server.requests[0]
        assert str(request.url) == f"{GATEWAY_URL}/orders"
        expected_auth = base64.b64encode(
            f"{KEY_ID}:{KEY_SECRET}".encode()
        ).decode()
        assert request.headers["Authorization"] == f"Basic {expected_auth}"
        assert json.loads(request.content) == {
            "amount": 125000,
            "currency": "INR",
            "receipt": "ORD-20240315-001",
            "notes": {"order_id": "o-1"},
        }

    @pytest.mark.parametrize(
        "amount,currency,receipt",
        [
            (0, "INR", "ORD-1"),
            (-100, "INR", "ORD-1"),
            (100, "", "ORD-1"),
            (100, "INR", ""),
            (100, "INR", "R" * 41),
        ],
    )
    @pytest.mark.asyncio
    async def test_rejects_invalid_input_without_calling_gateway(
        self, amount: int, currency: str, receipt: str
    ) -> None:
        server = FakeGatewayServer()
        gateway = make_gateway(server)

        with pytest.raises(PaymentGatewayError):
            await gateway.create_remote_order(amount, currency, receipt, {})
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_server_error_is_not_retried(self) -> None:
        handler = Flaky(503)
        gateway = make_gateway(handler)

        with pytest.raises(PaymentGatewayError) as exc_info:
            await gateway.create_remote_order(100, "INR", "ORD-1", {})

        assert handler.calls == 1
        assert exc_info.value.status_code == 503


class TestFetchPayment:
    @pytest.mark.asyncio
    async def test_retries_server_errors(self) -> None:
        handler = Flaky(503, 502)
        gateway = make_gateway(handler)

        payment = await gateway.fetch_payment("pay_1")

        assert handler.calls == 3
        assert payment.status == "captured"
        assert payment.remote_order_id == "order_rm_1"
        assert payment.amount == 50000

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self) -> None:
        handler = Flaky(500, 500, 500)
        gateway = make_gateway(handler, max_retries=2)

        with pytest.raises(PaymentGatewayError) as exc_info:
            await gateway.fetch_payment("pay_1")

        assert handler.calls == 3
        assert exc_info.value.status_code == 500
        assert "status 500" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_client_error_is_raised_immediately(self) -> None:
        handler = Flaky(400)
        gateway = make_gateway(handler)

        with pytest.raises(PaymentGatewayError) as exc_info:
            await gateway.fetch_payment("pay_1")

        assert handler.calls == 1
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried_then_wrapped(self) -> None:
        calls = []

        def unreachable(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        gateway = make_gateway(unreachable, max_retries=1)

        with pytest.raises(PaymentGatewayError, match="unreachable") as exc_info:
            await gateway.fetch_payment("pay_1")

        assert len(calls) == 2
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestCreateRefund:
    @pytest.mark.asyncio
    async def test_posts_refund(self) -> None:
        server = FakeGatewayServer()
        gateway = make_gateway(server)

        refund = await gateway.create_refund("pay_9", 50000, {"reason": "x"})

        assert server.paths() == ["POST /v1/payments/pay_9/refund"]
        assert refund.refund_id == "rfnd_1"
        assert refund.remote_payment_id == "pay_9"
        assert refund.amount == 50000
        assert refund.status == "processed"

    @pytest.mark.asyncio
    async def test_rejects_non_positive_amount(self) -> None:
        server = FakeGatewayServer()
        with pytest.raises(PaymentGatewayError):
            await make_gateway(server).create_refund("pay_9", 0, {})
        assert server.requests == []


class TestVerifySignature:
    def test_signs_order_and_payment_joined_by_pipe(self) -> None:
        expected = hmac.new(
            b"secret", b"order_1|pay_1", hashlib.sha256
        ).hexdigest()

        assert compute_signature("secret", "order_1", "pay_1") == expected

    def test_valid_signature(self) -> None:
        gateway = make_gateway(FakeGatewayServer())
        signature = compute_signature(KEY_SECRET, "order_rm_1", "pay_1")

        assert gateway.verify_signature("order_rm_1", "pay_1", signature)

    @pytest.mark.parametrize(
        "order_id,payment_id",
        [("order_rm_2", "pay_1"), ("order_rm_1", "pay_2")],
    )
    def test_signature_is_bound_to_both_ids(
        self, order_id: str, payment_id: str
    ) -> None:
        gateway = make_gateway(FakeGatewayServer())
        signature = compute_signature(KEY_SECRET, "order_rm_1", "pay_1")

        assert not gateway.verify_signature(order_id, payment_id, signature)

    def test_wrong_secret(self) -> None:
        gateway = make_gateway(FakeGatewayServer())
        signature = compute_signature("other", "order_rm_1", "pay_1")

        assert not gateway.verify_signature("order_rm_1", "pay_1", signature)

    @pytest.mark.parametrize(
        "order_id,payment_id,signature",
        [("", "pay_1", "abc"), ("order_rm_1", "", "abc"), ("o", "p", "")],
    )
    def test_missing_parts(
        self, order_id: str, payment_id: str, signature: str
    ) -> None:
        gateway = make_gateway(FakeGatewayServer())
        assert not gateway.verify_signature(order_id, payment_id, signature)

    def test_missing_secret(self) -> None:
        gateway = HttpPaymentGateway(GATEWAY_URL, KEY_ID, "")
        signature = compute_signature("", "order_rm_1", "pay_1")

        assert not gateway.verify_signature("order_rm_1", "pay_1", signature)
