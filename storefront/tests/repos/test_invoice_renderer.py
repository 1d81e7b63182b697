from decimal import Decimal
from pathlib import Path

import pytest

from storefront.domain import Invoice, InvoiceItem
from storefront.repos.jinja.invoice_renderer import JinjaInvoiceRenderer
from storefront.tests.factories import FIXED_NOW, ShippingAddressFactory


def make_invoice(name: str = "Cotton Tee", intra_state: bool = True) -> Invoice:
    tax = {"cgst": 6000, "sgst": 6000} if intra_state else {"igst": 12000}
    return Invoice(
        invoice_id="inv-1",
        invoice_number="INV-20240315-001",
        order_id="order-1",
        order_number="ORD-20240315-001",
        user_id="buyer-1",
        invoice_date=FIXED_NOW,
        billing_address=ShippingAddressFactory(),
        shipping_address=ShippingAddressFactory(),
        items=[
            InvoiceItem(
                product_id="prod-tee",
                name=name,
                hsn_code="6109",
                quantity=2,
                unit_price=50000,
                taxable_amount=100000,
                gst_rate=Decimal("12"),
                total_tax=12000,
                total_with_tax=112000,
                **tax,
            )
        ],
        subtotal=100000,
        total_cgst=tax.get("cgst", 0),
        total_sgst=tax.get("sgst", 0),
        total_igst=tax.get("igst", 0),
        total_tax=12000,
        grand_total=112000,
        is_intra_state=intra_state,
        seller_state="Gujarat",
    )


@pytest.mark.asyncio
async def test_renders_intra_state_invoice() -> None:
    renderer = JinjaInvoiceRenderer(
        seller_name="Patel Textiles", seller_gstin="24ABCDE1234F1Z5"
    )

    document = await renderer.render_invoice(make_invoice())

    assert document.filename == "INV-20240315-001.html"
    assert document.content_type == "text/html"
    html = document.content
    assert "Patel Textiles" in html
    assert "GSTIN: 24ABCDE1234F1Z5" in html
    assert "Date: 15-03-2024" in html
    assert "ORD-20240315-001" in html
    assert "<th>CGST</th>" in html
    assert "<th>IGST</th>" not in html
    assert "500.00" in html
    assert "1120.00" in html
    assert "Rupees One Thousand One Hundred Twenty Only" in html


def test_inter_state_invoice_shows_igst() -> None:
    html = JinjaInvoiceRenderer().render_html(make_invoice(intra_state=False))

    assert "<th>IGST</th>" in html
    assert "<th>CGST</th>" not in html
    assert "GSTIN" not in html


def test_escapes_item_names() -> None:
    html = JinjaInvoiceRenderer().render_html(
        make_invoice(name="<script>alert(1)</script>")
    )

    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_missing_template_directory(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        JinjaInvoiceRenderer(template_dir=tmp_path / "nope")
