"""
Invoice Routes: creation with VAT, status changes, public invoice page,
WhatsApp delivery and PDF download
"""

import logging
import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..domain.payments import payfast_service
from ..domain.rewards.service import RewardsService
from ..models import Profile, utcnow
from ..models_invoice import Invoice, InvoiceItem
from ..security_utils import decrypt_credential
from ..services.invoice_pdf_generator import generate_invoice_pdf
from ..services.notification_service import notify_invoice_paid
from ..services.whatsapp_service import (
    WhatsAppNotConfiguredError,
    WhatsAppSendError,
    send_invoice_notification,
)
from ..utils.sanitization import sanitize_string

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["Invoices"])

VAT_RATE = 0.15
INVOICE_STATUSES = {"pending", "sent", "paid", "failed", "overdue", "cancelled"}
INVOICE_CREATED_POINTS = 10


class InvoiceItemCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    quantity: int = Field(1, ge=1)
    unit_price: float = Field(ge=0)


class InvoiceCreate(BaseModel):
    client_name: str = Field(min_length=1, max_length=255)
    client_email: Optional[EmailStr] = None
    client_phone: Optional[str] = Field(None, max_length=32)
    items: list[InvoiceItemCreate] = Field(min_length=1)
    vat_enabled: bool = False
    delivery_fee: float = Field(0, ge=0)
    delivery_method: Optional[str] = None
    delivery_address: Optional[str] = None
    delivery_date: Optional[str] = None
    delivery_notes: Optional[str] = None
    payment_enabled: bool = True
    show_payfast: bool = True
    show_snapscan: bool = False
    payment_instructions: Optional[str] = None
    auto_reminder_enabled: bool = False


class InvoiceStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in INVOICE_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(sorted(INVOICE_STATUSES))}")
        return v


class InvoiceItemResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    quantity: int
    unit_price: float
    total_price: float

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    client_name: str
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    subtotal: float
    vat_enabled: bool
    vat_amount: float
    delivery_fee: float
    total_amount: float
    status: str
    payment_enabled: bool
    show_payfast: bool
    show_snapscan: bool
    payment_instructions: Optional[str] = None
    delivery_method: Optional[str] = None
    delivery_address: Optional[str] = None
    delivery_date: Optional[str] = None
    delivery_notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    items: list[InvoiceItemResponse] = []

    class Config:
        from_attributes = True


def generate_invoice_number(db: Session) -> str:
    """INV-<epoch ms>, bumped forward past any number already issued"""
    stamp = int(time.time() * 1000)
    while db.query(Invoice.id).filter(Invoice.invoice_number == f"INV-{stamp}").first():
        stamp += 1
    return f"INV-{stamp}"


def calculate_totals(
    items: list[InvoiceItemCreate], vat_enabled: bool, delivery_fee: float
) -> tuple[float, float, float]:
    """Returns (subtotal, vat_amount, total_amount)"""
    subtotal = round(sum(item.quantity * item.unit_price for item in items), 2)
    vat_amount = round(subtotal * VAT_RATE, 2) if vat_enabled else 0.0
    total = round(subtotal + vat_amount + (delivery_fee or 0), 2)
    return subtotal, vat_amount, total


def invoice_payment_link(invoice: Invoice, merchant: Profile) -> Optional[str]:
    """Signed PayFast link when the merchant has their own PayFast account"""
    if not invoice.payment_enabled or not invoice.show_payfast:
        return None
    if not merchant.payfast_merchant_id or not merchant.payfast_merchant_key:
        return None
    credentials = payfast_service.PayFastCredentials(
        merchant_id=merchant.payfast_merchant_id,
        merchant_key=merchant.payfast_merchant_key,
        passphrase=decrypt_credential(merchant.payfast_passphrase),
        mode=merchant.payfast_mode or "live",
    )
    return payfast_service.generate_payment_link(
        credentials,
        invoice.invoice_number,
        invoice.total_amount,
        invoice.client_name,
        invoice.client_email,
    )


def create_invoice_record(
    db: Session, user: Profile, data: InvoiceCreate
) -> tuple[Invoice, Optional[str]]:
    """
    Persist an invoice with its items and run the rewards hooks.

    Returns:
        (invoice, weekly achievement message or None)
    """
    subtotal, vat_amount, total = calculate_totals(data.items, data.vat_enabled, data.delivery_fee)

    invoice = Invoice(
        user_id=user.id,
        invoice_number=generate_invoice_number(db),
        client_name=sanitize_string(data.client_name),
        client_email=data.client_email,
        client_phone=data.client_phone,
        subtotal=subtotal,
        vat_enabled=data.vat_enabled,
        vat_amount=vat_amount,
        delivery_fee=data.delivery_fee or 0,
        total_amount=total,
        status="pending",
        payment_enabled=data.payment_enabled,
        show_payfast=data.show_payfast,
        show_snapscan=data.show_snapscan,
        payment_instructions=sanitize_string(data.payment_instructions),
        delivery_method=data.delivery_method,
        delivery_address=sanitize_string(data.delivery_address),
        delivery_date=data.delivery_date,
        delivery_notes=sanitize_string(data.delivery_notes),
        auto_reminder_enabled=data.auto_reminder_enabled,
    )
    for item in data.items:
        invoice.items.append(
            InvoiceItem(
                title=sanitize_string(item.title),
                description=sanitize_string(item.description),
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=round(item.quantity * item.unit_price, 2),
            )
        )

    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    logger.info(f"🧾 Invoice {invoice.invoice_number} created for {user.id}: R{total:.2f}")

    # Rewards never block invoicing; the service logs its own failures
    rewards = RewardsService(db)
    rewards.update_streak_on_invoice(user.id)
    rewards.award_points(
        user.id, "invoice_created", INVOICE_CREATED_POINTS, {"invoice_number": invoice.invoice_number}
    )
    try:
        achievement = rewards.check_weekly_invoice_achievement(user.id)
    except Exception as e:
        logger.error(f"❌ Weekly achievement check failed for {user.id}: {e}")
        achievement = None

    return invoice, achievement


def _get_user_invoice(db: Session, invoice_id: str, user: Profile) -> Invoice:
    invoice = (
        db.query(Invoice).filter(Invoice.id == invoice_id, Invoice.user_id == user.id).first()
    )
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


@router.post("", status_code=201)
async def create_invoice(
    data: InvoiceCreate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    invoice, achievement = create_invoice_record(db, current_user, data)
    return {
        "invoice": InvoiceResponse.model_validate(invoice),
        "payment_link": invoice_payment_link(invoice, current_user),
        "achievement_message": achievement,
    }


@router.get("", response_model=list[InvoiceResponse])
async def list_invoices(
    status: Optional[str] = Query(None),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Invoice).filter(Invoice.user_id == current_user.id)
    if status:
        query = query.filter(Invoice.status == status)
    return query.order_by(Invoice.created_at.desc()).all()


@router.get("/public/{invoice_number}")
async def get_public_invoice(invoice_number: str, db: Session = Depends(get_db)):
    """Invoice page shown to the client. No authentication required."""
    invoice = db.query(Invoice).filter(Invoice.invoice_number == invoice_number).first()
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")

    merchant = db.query(Profile).filter(Profile.id == invoice.user_id).first()
    if not merchant:
        raise HTTPException(status_code=404, detail="Business not found")

    return {
        "invoice": InvoiceResponse.model_validate(invoice),
        "business": {
            "business_name": merchant.business_name,
            "logo_url": merchant.logo_url,
            "whatsapp_number": merchant.whatsapp_number,
            "primary_color": merchant.primary_color,
        },
        "payment_options": {
            "payfast_link": invoice_payment_link(invoice, merchant) or merchant.payfast_link,
            "snapscan_link": merchant.snapscan_link if invoice.show_snapscan else None,
            "capitec_paylink": merchant.capitec_paylink if merchant.show_capitec else None,
            "eft_details": merchant.eft_details,
        },
    }


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: str,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _get_user_invoice(db, invoice_id, current_user)


@router.patch("/{invoice_id}/status", response_model=InvoiceResponse)
async def update_invoice_status(
    invoice_id: str,
    data: InvoiceStatusUpdate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    invoice = _get_user_invoice(db, invoice_id, current_user)
    invoice.status = data.status
    if data.status == "paid" and not invoice.paid_at:
        invoice.paid_at = utcnow()
    db.commit()
    db.refresh(invoice)
    logger.info(f"✅ Invoice {invoice.invoice_number} marked {data.status}")

    if data.status == "paid":
        # notify_invoice_paid is a no-op once the confirmation has gone out
        await notify_invoice_paid(db, invoice)
    return invoice


@router.post("/{invoice_id}/send-whatsapp")
async def send_invoice_whatsapp(
    invoice_id: str,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    invoice = _get_user_invoice(db, invoice_id, current_user)
    if not invoice.client_phone:
        raise HTTPException(status_code=400, detail="Invoice has no client phone number")

    try:
        result = await send_invoice_notification(
            db,
            invoice.client_phone,
            invoice.client_name,
            f"{invoice.total_amount:.2f}",
            invoice.invoice_number,
        )
    except WhatsAppNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except WhatsAppSendError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    if not result["success"]:
        raise HTTPException(status_code=502, detail=result.get("error") or "WhatsApp send failed")

    if invoice.status == "pending":
        invoice.status = "sent"
        db.commit()
    return result


@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: str,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    invoice = _get_user_invoice(db, invoice_id, current_user)
    try:
        pdf_bytes = generate_invoice_pdf(invoice, db)
    except Exception as e:
        logger.error(f"❌ PDF generation failed for {invoice.invoice_number}: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate PDF") from e

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{invoice.invoice_number}.pdf"'},
    )
