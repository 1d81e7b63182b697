"""
Tests for domain model validation and the Order aggregate's own
bookkeeping.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from storefront.domain import Actor, Order, OrderItem, ShippingAddress
from storefront.errors import OrderValidationError
from storefront.tests.factories import (
    FIXED_NOW,
    OrderFactory,
    OrderItemFactory,
    ShippingAddressFactory,
)
from storefront.validation import validate_domain_model


class TestOrderItem:
    def test_total_must_equal_price_times_quantity(self) -> None:
        with pytest.raises(ValidationError, match="price x quantity"):
            OrderItem(
                product_id="p",
                name="Tee",
                quantity=2,
                price=500,
                total=999,
            )

    def test_quantity_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            OrderItemFactory(quantity=0)


class TestOrder:
    def test_subtotal_must_match_items(self) -> None:
        with pytest.raises(ValidationError, match="Subtotal"):
            OrderFactory(subtotal=1)

    def test_items_must_not_be_empty(self) -> None:
        with pytest.raises(ValidationError):
            OrderFactory(items=[], subtotal=0, total_amount=100)

    def test_reservation_lifecycle(self) -> None:
        order = OrderFactory()

        order.reserve_stock(FIXED_NOW, 15)

        assert order.stock_reserved
        assert order.stock_reservation_expiry == FIXED_NOW + timedelta(
            minutes=15
        )
        assert not order.is_stock_reservation_expired(
            FIXED_NOW + timedelta(minutes=15)
        )
        assert order.is_stock_reservation_expired(
            FIXED_NOW + timedelta(minutes=15, seconds=1)
        )

        order.release_stock_reservation()

        assert not order.stock_reserved
        assert order.stock_reservation_expiry is None
        assert not order.is_stock_reservation_expired(
            FIXED_NOW + timedelta(days=1)
        )

    def test_json_round_trip(self) -> None:
        order = OrderFactory()
        order.reserve_stock(FIXED_NOW, 15)

        restored = Order.model_validate_json(order.model_dump_json())

        assert restored == order


class TestShippingAddress:
    @pytest.mark.parametrize("phone", ["12345", "5876543210", "98765432101"])
    def test_rejects_invalid_phone(self, phone: str) -> None:
        with pytest.raises(ValidationError):
            ShippingAddressFactory(phone=phone)

    def test_rejects_invalid_pincode(self) -> None:
        with pytest.raises(ValidationError):
            ShippingAddressFactory(pincode="38001")

    def test_strips_text_fields(self) -> None:
        address = ShippingAddressFactory(city="  Surat ")
        assert address.city == "Surat"


class TestActor:
    def test_admin_flag(self) -> None:
        assert Actor(user_id="a", role="admin").is_admin
        assert not Actor(user_id="b").is_admin
        assert not Actor(role="system").is_admin


def test_validate_domain_model_wraps_pydantic_errors() -> None:
    with pytest.raises(OrderValidationError, match="ShippingAddress"):
        validate_domain_model({"name": "x"}, ShippingAddress)


def test_validate_domain_model_returns_model() -> None:
    data = ShippingAddressFactory().model_dump()
    assert validate_domain_model(data, ShippingAddress).pincode == "380001"
