"""
Invoice PDF Generator
Renders a merchant invoice (items, VAT, payment and banking details) with reportlab
"""

import io
import logging

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy.orm import Session

from ..models import Profile
from ..models_invoice import Invoice
from ..utils.sanitization import sanitize_string

logger = logging.getLogger(__name__)


def format_rand(value: float) -> str:
    return f"R{(value or 0):,.2f}"


class InvoicePDFGenerator:
    """Generate a printable invoice"""

    def __init__(self, invoice: Invoice, db: Session):
        self.invoice = invoice
        self.profile = db.query(Profile).filter(Profile.id == invoice.user_id).first()

        self.page_width, self.page_height = A4
        self.margin = 0.75 * inch
        self.content_width = self.page_width - (2 * self.margin)

        self.brand_color = colors.HexColor("#4C9F70")
        self.dark_gray = colors.HexColor("#1e293b")
        self.light_gray = colors.HexColor("#f1f5f9")

    @property
    def business_name(self) -> str:
        if self.profile:
            return self.profile.business_name or self.profile.full_name or "Link2Pay Merchant"
        return "Link2Pay Merchant"

    def generate(self) -> bytes:
        """Generate PDF and return bytes"""
        logger.info(f"📄 Generating invoice PDF for {self.invoice.invoice_number}")

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=self.margin,
            leftMargin=self.margin,
            topMargin=self.margin,
            bottomMargin=self.margin,
            title=f"Invoice {self.invoice.invoice_number}",
        )

        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            "InvoiceTitle", parent=styles["Heading1"], fontSize=22, textColor=self.brand_color
        )
        heading_style = ParagraphStyle(
            "InvoiceHeading",
            parent=styles["Heading2"],
            fontSize=13,
            textColor=self.dark_gray,
            spaceBefore=16,
            spaceAfter=6,
        )
        body_style = ParagraphStyle(
            "InvoiceBody", parent=styles["Normal"], fontSize=10, textColor=self.dark_gray
        )

        story = [
            Paragraph(sanitize_string(self.business_name), title_style),
            Paragraph(f"<b>INVOICE #{self.invoice.invoice_number}</b>", body_style),
            Paragraph(f"Date: {self.invoice.created_at.strftime('%d %B %Y')}", body_style),
            Spacer(1, 0.3 * inch),
            Paragraph("Bill To", heading_style),
            Paragraph(sanitize_string(self.invoice.client_name), body_style),
        ]
        for contact in (self.invoice.client_email, self.invoice.client_phone):
            if contact:
                story.append(Paragraph(sanitize_string(contact), body_style))

        if self.invoice.delivery_method:
            story.append(Paragraph("Delivery", heading_style))
            story.append(Paragraph(sanitize_string(self.invoice.delivery_method), body_style))
            if self.invoice.delivery_address:
                story.append(Paragraph(sanitize_string(self.invoice.delivery_address), body_style))
            if self.invoice.delivery_date:
                story.append(Paragraph(f"Date: {self.invoice.delivery_date}", body_style))

        story.append(Spacer(1, 0.3 * inch))
        story.append(self._items_table())
        story.append(Spacer(1, 0.2 * inch))
        story.append(self._totals_table())

        if self.invoice.payment_instructions:
            story.append(Paragraph("Payment Instructions", heading_style))
            story.append(Paragraph(sanitize_string(self.invoice.payment_instructions), body_style))

        if self.profile and self.profile.eft_details:
            story.append(Paragraph("Banking Details", heading_style))
            for line in self.profile.eft_details.splitlines():
                story.append(Paragraph(sanitize_string(line), body_style))

        story.append(Spacer(1, 0.5 * inch))
        story.append(
            Paragraph(
                "<i>Powered by Link2Pay</i>",
                ParagraphStyle(
                    "Footer", parent=body_style, fontSize=8, textColor=colors.grey, alignment=1
                ),
            )
        )

        doc.build(story)
        pdf_bytes = buffer.getvalue()
        buffer.close()

        logger.info(f"✅ Generated invoice PDF ({len(pdf_bytes)} bytes)")
        return pdf_bytes

    def _items_table(self) -> Table:
        rows = [["Description", "Qty", "Unit Price", "Total"]]
        for item in self.invoice.items:
            description = item.title if not item.description else f"{item.title} - {item.description}"
            rows.append(
                [description, str(item.quantity), format_rand(item.unit_price), format_rand(item.total_price)]
            )

        table = Table(
            rows,
            colWidths=[
                self.content_width * 0.5,
                self.content_width * 0.1,
                self.content_width * 0.2,
                self.content_width * 0.2,
            ],
            repeatRows=1,
        )
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), self.brand_color),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                    ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 10),
                    ("FONT", (0, 1), (-1, -1), "Helvetica", 9),
                    ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
                    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, self.light_gray]),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                    ("TOPPADDING", (0, 0), (-1, -1), 6),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
                ]
            )
        )
        return table

    def _totals_table(self) -> Table:
        rows = [["Subtotal", format_rand(self.invoice.subtotal)]]
        if self.invoice.vat_enabled and self.invoice.vat_amount:
            rows.append(["VAT (15%)", format_rand(self.invoice.vat_amount)])
        if self.invoice.delivery_fee:
            rows.append(["Delivery", format_rand(self.invoice.delivery_fee)])
        rows.append(["Total", format_rand(self.invoice.total_amount)])

        table = Table(rows, colWidths=[self.content_width * 0.8, self.content_width * 0.2])
        table.setStyle(
            TableStyle(
                [
                    ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
                    ("FONT", (0, 0), (-1, -2), "Helvetica", 10),
                    ("FONT", (0, -1), (-1, -1), "Helvetica-Bold", 11),
                    ("LINEABOVE", (0, -1), (-1, -1), 1, self.dark_gray),
                ]
            )
        )
        return table


def generate_invoice_pdf(invoice: Invoice, db: Session) -> bytes:
    return InvoicePDFGenerator(invoice, db).generate()
