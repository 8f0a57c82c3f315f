"""
WhatsApp Routes: invoice notifications, payment confirmations and quick invoice commands
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import Profile
from ..models_invoice import Product
from ..services.whatsapp_service import (
    WhatsAppNotConfiguredError,
    WhatsAppSendError,
    send_invoice_notification,
    send_payment_confirmation,
)
from ..shared.validators import format_e164, parse_quick_invoice_command, validate_e164
from .invoices import InvoiceCreate, InvoiceItemCreate, InvoiceResponse, create_invoice_record

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/whatsapp", tags=["WhatsApp"])

QUICK_INVOICE_USAGE = "Invalid command format. Use l2p:ClientName:Amount:ProductID:+27XXXXXXXXX"


class WhatsAppSendRequest(BaseModel):
    phone: str
    client_name: str
    amount: str
    invoice_id: str
    message_type: str = "invoice"  # invoice, payment_confirmation
    invoice_url: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        phone = format_e164(v)
        if not validate_e164(phone):
            raise ValueError("Invalid phone number")
        return phone


class QuickInvoiceRequest(BaseModel):
    command: str


async def _send(coro) -> dict:
    try:
        return await coro
    except WhatsAppNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except WhatsAppSendError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.post("/send")
async def send_whatsapp(
    data: WhatsAppSendRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Send an invoice notification or payment confirmation template"""
    if data.message_type == "payment_confirmation":
        result = await _send(
            send_payment_confirmation(db, data.phone, data.client_name, data.invoice_id)
        )
    else:
        result = await _send(
            send_invoice_notification(
                db, data.phone, data.client_name, data.amount, data.invoice_id, data.invoice_url
            )
        )

    if not result["success"]:
        raise HTTPException(status_code=502, detail=result.get("error") or "WhatsApp send failed")
    return result


@router.post("/quick-invoice")
async def quick_invoice(
    data: QuickInvoiceRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create and send an invoice from a one-line l2p: command"""
    parsed = parse_quick_invoice_command(data.command)
    if parsed is None:
        raise HTTPException(status_code=400, detail=QUICK_INVOICE_USAGE)
    if "error" in parsed:
        raise HTTPException(status_code=400, detail=parsed["error"])

    product = (
        db.query(Product)
        .filter(
            Product.user_id == current_user.id,
            Product.product_id == parsed["product_id"].upper(),
        )
        .first()
    )
    if not product:
        raise HTTPException(status_code=404, detail=f"Product {parsed['product_id']} not found")

    invoice, achievement = create_invoice_record(
        db,
        current_user,
        InvoiceCreate(
            client_name=parsed["client_name"],
            client_phone=parsed["phone"],
            items=[
                InvoiceItemCreate(
                    title=product.title,
                    description=product.description,
                    quantity=1,
                    unit_price=parsed["amount"],
                )
            ],
            delivery_method=product.delivery_method,
        ),
    )
    logger.info(f"⚡ Quick invoice {invoice.invoice_number} created for {parsed['client_name']}")

    try:
        whatsapp = await send_invoice_notification(
            db,
            parsed["phone"],
            invoice.client_name,
            f"{invoice.total_amount:.2f}",
            invoice.invoice_number,
        )
    except WhatsAppSendError as e:
        logger.error(f"❌ Quick invoice {invoice.invoice_number} not sent: {e}")
        whatsapp = {"success": False, "error": str(e)}

    if whatsapp["success"]:
        invoice.status = "sent"
        db.commit()
        db.refresh(invoice)

    return {
        "success": True,
        "invoice": InvoiceResponse.model_validate(invoice),
        "whatsapp": whatsapp,
        "achievement_message": achievement,
    }
