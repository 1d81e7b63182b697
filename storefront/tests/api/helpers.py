"""
Headers and request builders shared by the API tests.
"""

from typing import Any, Dict

from fastapi.testclient import TestClient

BUYER_HEADERS = {"X-User-Id": "buyer-1"}
OTHER_BUYER_HEADERS = {"X-User-Id": "buyer-2"}
ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-User-Role": "admin"}

ORDER_BODY: Dict[str, Any] = {
    "items": [
        {"product_id": "prod-tee", "quantity": 2},
        {"product_id": "prod-mug", "quantity": 1},
    ],
    "shipping_address": {
        "name": "Asha Patel",
        "phone": "9876543210",
        "address_line1": "12 Relief Road",
        "city": "Ahmedabad",
        "state": "Gujarat",
        "pincode": "380001",
    },
}


def place_order(
    client: TestClient, headers: Dict[str, str] = BUYER_HEADERS, **body: Any
) -> Dict[str, Any]:
    response = client.post(
        "/orders", json={**ORDER_BODY, **body}, headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()["order"]  # type: ignore[no-any-return]
