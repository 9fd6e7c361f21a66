"""
Receipt generation for POS sales.

- PDF receipts on A4 for email/storage
- Thermal printer format (80mm width)
- Code 128 barcode of the sale number for quick lookup at returns
"""

import io

from reportlab.graphics.barcode import code128
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch, mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from reportlab.platypus.flowables import HRFlowable

from .models import Sale


class ReceiptGenerator:
    """
    Receipt generator for sales.

    Supports two layouts:
    - Standard receipt (A4)
    - Thermal printer format (80mm width)
    """

    # Receipt dimensions
    THERMAL_WIDTH = 80 * mm

    # Margins
    THERMAL_MARGIN = 5 * mm
    STANDARD_MARGIN = 20 * mm

    def __init__(self, sale: Sale):
        self.sale = sale
        self.tenant = sale.tenant
        self.currency = getattr(self.tenant, "currency", "") or ""
        self.styles = getSampleStyleSheet()
        self._create_custom_styles()

    def _create_custom_styles(self):
        """Create custom paragraph styles for receipts."""
        self.shop_name_style = ParagraphStyle(
            "ShopName",
            parent=self.styles["Heading1"],
            fontSize=18,
            spaceAfter=6,
            alignment=1,  # Center alignment
            fontName="Helvetica-Bold",
        )
        self.thermal_shop_style = ParagraphStyle(
            "ThermalShop",
            parent=self.shop_name_style,
            fontSize=13,
            spaceAfter=4,
        )
        self.header_style = ParagraphStyle(
            "ReceiptHeader",
            parent=self.styles["Heading2"],
            fontSize=14,
            spaceAfter=10,
            alignment=1,
        )
        self.body_style = ParagraphStyle(
            "ReceiptBody",
            parent=self.styles["Normal"],
            fontSize=10,
            spaceAfter=4,
        )
        self.thermal_body_style = ParagraphStyle(
            "ThermalBody",
            parent=self.body_style,
            fontSize=7,
            spaceAfter=2,
        )
        self.total_style = ParagraphStyle(
            "ReceiptTotal",
            parent=self.styles["Normal"],
            fontSize=12,
            alignment=2,  # Right alignment
            fontName="Helvetica-Bold",
        )

    def _money(self, value):
        return f"{self.currency} {value:,.2f}".strip()

    def generate_pdf_receipt(self, format_type: str = "standard") -> bytes:
        """
        Generate PDF receipt.

        Args:
            format_type: 'standard' for A4, 'thermal' for 80mm thermal paper

        Returns:
            PDF bytes
        """
        thermal = format_type == "thermal"
        buffer = io.BytesIO()
        if thermal:
            doc = SimpleDocTemplate(
                buffer,
                pagesize=(self.THERMAL_WIDTH, 11 * inch),
                rightMargin=self.THERMAL_MARGIN,
                leftMargin=self.THERMAL_MARGIN,
                topMargin=self.THERMAL_MARGIN,
                bottomMargin=self.THERMAL_MARGIN,
            )
        else:
            doc = SimpleDocTemplate(
                buffer,
                pagesize=A4,
                rightMargin=self.STANDARD_MARGIN,
                leftMargin=self.STANDARD_MARGIN,
                topMargin=self.STANDARD_MARGIN,
                bottomMargin=self.STANDARD_MARGIN,
            )

        story = []
        story.extend(self._build_shop_header(thermal))
        story.extend(self._build_sale_info(thermal))
        story.extend(self._build_items_table(thermal))
        story.extend(self._build_totals_section(thermal))
        story.extend(self._build_receipt_footer(thermal))

        doc.build(story)
        pdf_bytes = buffer.getvalue()
        buffer.close()
        return pdf_bytes

    def _build_shop_header(self, thermal):
        elements = []
        style = self.thermal_shop_style if thermal else self.shop_name_style
        elements.append(Paragraph(self.tenant.company_name, style))
        warehouse = self.sale.warehouse
        body_style = self.thermal_body_style if thermal else self.body_style
        elements.append(Paragraph(f"<para align='center'>{warehouse.name}</para>", body_style))
        if warehouse.location:
            elements.append(
                Paragraph(f"<para align='center'>{warehouse.location}</para>", body_style)
            )
        if not thermal:
            elements.append(Paragraph("SALES RECEIPT", self.header_style))
        elements.append(HRFlowable(width="100%", thickness=1, color=colors.black))
        elements.append(Spacer(1, 8 if thermal else 12))
        return elements

    def _build_sale_info(self, thermal):
        elements = []
        body_style = self.thermal_body_style if thermal else self.body_style

        sale_info = [
            f"Receipt #: {self.sale.sale_number}",
            f"Date: {self.sale.sale_date.strftime('%Y-%m-%d %H:%M')}",
            f"Cashier: {self.sale.cashier.get_full_name() or self.sale.cashier.username}",
        ]
        if self.sale.customer_id:
            sale_info.append(f"Customer: {self.sale.customer.name}")
        if self.sale.is_voided:
            sale_info.append("<b>VOIDED</b>")

        for info in sale_info:
            elements.append(Paragraph(info, body_style))
        elements.append(Spacer(1, 8 if thermal else 12))
        return elements

    def _build_items_table(self, thermal):
        if thermal:
            data = [["Item", "Qty", "Price", "Total"]]
            col_widths = [32 * mm, 10 * mm, 14 * mm, 14 * mm]
            font_size = 7
        else:
            data = [["Item", "SKU", "Qty", "Unit Price", "Total"]]
            col_widths = [65 * mm, 30 * mm, 20 * mm, 27 * mm, 28 * mm]
            font_size = 9

        for item in self.sale.items.select_related("product"):
            name = item.product.name
            quantity = f"{item.quantity.normalize():f}"
            if thermal:
                data.append(
                    [
                        name[:18] + ("..." if len(name) > 18 else ""),
                        quantity,
                        f"{item.unit_price:.2f}",
                        f"{item.line_total:.2f}",
                    ]
                )
            else:
                data.append(
                    [
                        name,
                        item.product.sku,
                        quantity,
                        f"{item.unit_price:.2f}",
                        f"{item.line_total:.2f}",
                    ]
                )

        table = Table(data, colWidths=col_widths)
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, -1), font_size),
                    ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
                    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ]
            )
        )
        return [table, Spacer(1, 8 if thermal else 12)]

    def _build_totals_section(self, thermal):
        elements = []
        body_style = self.thermal_body_style if thermal else self.body_style

        lines = [f"Subtotal: {self._money(self.sale.subtotal)}"]
        if self.sale.discount:
            lines.append(f"Discount: -{self._money(self.sale.discount)}")
        if self.sale.tax:
            lines.append(f"Tax ({self.sale.tax_rate}%): {self._money(self.sale.tax)}")
        for line in lines:
            elements.append(Paragraph(f"<para align='right'>{line}</para>", body_style))

        elements.append(HRFlowable(width="100%", thickness=2, color=colors.black))
        elements.append(
            Paragraph(f"<b>TOTAL: {self._money(self.sale.total)}</b>", self.total_style)
        )

        payment_method = dict(Sale.PAYMENT_METHOD_CHOICES).get(
            self.sale.payment_method, self.sale.payment_method
        )
        elements.append(Paragraph(f"Payment Method: {payment_method}", body_style))
        if self.sale.payment_method == Sale.CASH and self.sale.cash_received is not None:
            elements.append(
                Paragraph(f"Cash received: {self._money(self.sale.cash_received)}", body_style)
            )
            elements.append(
                Paragraph(f"Change: {self._money(self.sale.change_given)}", body_style)
            )
        elements.append(Spacer(1, 8 if thermal else 12))
        return elements

    def _build_receipt_footer(self, thermal):
        body_style = self.thermal_body_style if thermal else self.body_style
        elements = [HRFlowable(width="100%", thickness=1, color=colors.black), Spacer(1, 6)]
        elements.append(
            Paragraph("<para align='center'>Thank you for your business!</para>", body_style)
        )
        elements.append(Spacer(1, 6))
        elements.append(
            code128.Code128(
                self.sale.sale_number,
                barHeight=(8 if thermal else 12) * mm,
                barWidth=(0.25 if thermal else 0.4) * mm,
            )
        )
        return elements


def generate_receipt(sale: Sale, format_type: str = "standard") -> bytes:
    if format_type not in ("standard", "thermal"):
        raise ValueError(f"Unsupported receipt format: {format_type}")
    return ReceiptGenerator(sale).generate_pdf_receipt(format_type)
