"""Render invoice content to a PDF document with reportlab."""

import io
import logging
from decimal import Decimal

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from core.models import InvoiceData

logger = logging.getLogger(__name__)


def format_amount(value: Decimal) -> str:
    return f"{value:,.2f}"


def format_percentage(value: Decimal) -> str:
    return f"{value.normalize():f}%"


class InvoiceRenderer:
    """Turns InvoiceData into PDF bytes. Pure function of its input."""

    def __init__(self, currency_symbol: str = "Rs. "):
        self.currency_symbol = currency_symbol

    def render(self, invoice: InvoiceData) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=1.5 * cm,
            rightMargin=1.5 * cm,
            topMargin=2.0 * cm,
            bottomMargin=1.5 * cm,
            title=invoice.invoice_number,
        )

        title_style = ParagraphStyle(
            name="InvoiceTitle",
            fontName="Helvetica-Bold",
            fontSize=16,
            leading=20,
            textColor=colors.HexColor("#0F172A"),
        )
        meta_style = ParagraphStyle(
            name="InvoiceMeta",
            fontName="Helvetica",
            fontSize=9,
            leading=12,
            textColor=colors.HexColor("#475569"),
        )

        story = [
            Paragraph(self._escape(invoice.hotel_name), title_style),
            Spacer(1, 0.2 * cm),
            Paragraph(f"Invoice {self._escape(invoice.invoice_number)}", meta_style),
            Paragraph(f"Table {invoice.table_number}", meta_style),
            Paragraph(invoice.date.strftime("%d %b %Y %H:%M UTC"), meta_style),
            Spacer(1, 0.6 * cm),
            self._items_table(invoice),
            Spacer(1, 0.4 * cm),
            self._totals_table(invoice),
        ]

        doc.build(story)
        pdf = buffer.getvalue()
        logger.debug(f"Rendered {invoice.invoice_number} ({len(pdf)} bytes)")
        return pdf

    def _items_table(self, invoice: InvoiceData) -> Table:
        data = [["Item", "Qty", "Price", "Total"]]
        for line in invoice.items:
            data.append([
                line.dish_name,
                str(line.quantity),
                self._money(line.price),
                self._money(line.total),
            ])

        table = Table(data, colWidths=[9 * cm, 2 * cm, 3 * cm, 3.5 * cm], repeatRows=1)
        table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#E2E8F0")),
            ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
            ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.HexColor("#94A3B8")),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F8FAFC")]),
        ]))
        return table

    def _totals_table(self, invoice: InvoiceData) -> Table:
        rows = [["Subtotal", self._money(invoice.subtotal)]]
        if invoice.discount > 0:
            rows.append(["Discount", f"-{self._money(invoice.discount)}"])
        rows.append([f"GST ({format_percentage(invoice.gst.percentage)})", self._money(invoice.gst.amount)])
        rows.append([
            f"Service charge ({format_percentage(invoice.service_charge.percentage)})",
            self._money(invoice.service_charge.amount),
        ])
        rows.append(["Grand total", self._money(invoice.grand_total)])

        table = Table(rows, colWidths=[14 * cm, 3.5 * cm])
        table.setStyle(TableStyle([
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
            ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ("LINEABOVE", (0, -1), (-1, -1), 0.75, colors.HexColor("#0F172A")),
        ]))
        return table

    def _money(self, value: Decimal) -> str:
        return f"{self.currency_symbol}{format_amount(value)}"

    @staticmethod
    def _escape(text: str) -> str:
        """Paragraph() parses a mini-markup; dish names must not."""
        return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
