from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from storefront.domain import Invoice, RenderedDocument
from storefront.money import format_rupees, to_rupees
from storefront.repositories import InvoiceRenderer
from storefront.tax import amount_in_words

TEMPLATE_DIR = Path(__file__).resolve().parents[2] / "templates"


class JinjaInvoiceRenderer(InvoiceRenderer):
    """Renders invoices to HTML with the ``invoice.html.j2`` template."""

    def __init__(
        self,
        seller_name: str = "Storefront Retail",
        seller_gstin: Optional[str] = None,
        template_dir: Optional[Path] = None,
    ) -> None:
        self.seller_name = seller_name
        self.seller_gstin = seller_gstin
        template_dir = template_dir or TEMPLATE_DIR

        # Ensure template directory exists
        if not template_dir.exists():
            raise FileNotFoundError(
                f"Template directory not found: {template_dir}"
            )

        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html", "xml", "j2"]),
        )
        self.env.filters["rupees"] = format_rupees

    def render_html(self, invoice: Invoice) -> str:
        template = self.env.get_template("invoice.html.j2")
        return template.render(
            invoice=invoice,
            seller_name=self.seller_name,
            seller_gstin=self.seller_gstin,
            grand_total_rupees=to_rupees(invoice.grand_total),
            amount_in_words=amount_in_words(invoice.grand_total),
        )

    async def render_invoice(self, invoice: Invoice) -> RenderedDocument:
        return RenderedDocument(
            filename=f"{invoice.invoice_number}.html",
            content_type="text/html",
            content=self.render_html(invoice),
        )
