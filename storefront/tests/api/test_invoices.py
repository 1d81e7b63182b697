"""
Tests for the invoice, webhook and system routers.
"""

from fastapi.testclient import TestClient

from storefront.tests.api.helpers import (
    ADMIN_HEADERS,
    BUYER_HEADERS,
    OTHER_BUYER_HEADERS,
    place_order,
)
from storefront.tests.fakes import signed_proof


def pay_by_webhook(client: TestClient, headers=BUYER_HEADERS) -> dict:
    order = place_order(client, headers=headers)
    initiation = client.post(
        f"/orders/{order['order_id']}/payment", headers=headers
    ).json()
    response = client.post(
        "/webhooks/payment",
        json=signed_proof(initiation["remote_order_id"]).model_dump(),
    )
    assert response.status_code == 200, response.text
    return response.json()  # type: ignore[no-any-return]


class TestPaymentWebhook:
    def test_confirms_payment_without_buyer_identity(
        self, client: TestClient
    ) -> None:
        outcome = pay_by_webhook(client)

        assert outcome["success"] is True
        assert outcome["already_processed"] is False
        assert outcome["order"]["status"] == "PAID"

    def test_redelivery_is_harmless(self, client: TestClient) -> None:
        outcome = pay_by_webhook(client)
        remote_order_id = outcome["order"]["payment"]["remote_order_id"]

        again = client.post(
            "/webhooks/payment",
            json=signed_proof(remote_order_id).model_dump(),
        )

        assert again.status_code == 200
        assert again.json()["already_processed"] is True
        assert again.json()["order"]["status"] == "PAID"

    def test_unknown_remote_order(self, client: TestClient) -> None:
        response = client.post(
            "/webhooks/payment",
            json=signed_proof("order_rm_404").model_dump(),
        )
        assert response.status_code == 404

    def test_malformed_body(self, client: TestClient) -> None:
        response = client.post(
            "/webhooks/payment", json={"remote_order_id": "x"}
        )
        assert response.status_code == 422


class TestInvoices:
    def test_buyer_sees_own_invoices(self, client: TestClient) -> None:
        mine = pay_by_webhook(client)
        pay_by_webhook(client, headers=OTHER_BUYER_HEADERS)

        listed = client.get("/invoices", headers=BUYER_HEADERS)
        everything = client.get("/invoices", headers=ADMIN_HEADERS)

        assert listed.status_code == 200
        assert listed.json()["total"] == 1
        assert listed.json()["items"][0]["order_id"] == mine["order"]["order_id"]
        assert everything.json()["total"] == 2

    def test_get_invoice(self, client: TestClient) -> None:
        invoice_id = pay_by_webhook(client)["invoice"]["invoice_id"]

        response = client.get(f"/invoices/{invoice_id}", headers=BUYER_HEADERS)

        assert response.status_code == 200
        invoice = response.json()
        assert invoice["status"] == "RENDERED"
        assert invoice["total_tax"] == 16500
        assert invoice["is_intra_state"] is True
        assert invoice["document_url"].startswith(
            "memory://documents/invoices/INV-20240315-001-"
        )

    def test_other_buyer_is_forbidden(self, client: TestClient) -> None:
        invoice_id = pay_by_webhook(client)["invoice"]["invoice_id"]

        response = client.get(
            f"/invoices/{invoice_id}", headers=OTHER_BUYER_HEADERS
        )
        assert response.status_code == 403

    def test_unknown_invoice(self, client: TestClient) -> None:
        response = client.get("/invoices/nope", headers=BUYER_HEADERS)
        assert response.status_code == 404


class TestHealthEndpoint:
    def test_health_check(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": "0.1.0"}
