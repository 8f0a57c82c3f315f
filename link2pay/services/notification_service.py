"""
Notification Service
WhatsApp notifications triggered by bookings and invoice payments.
Every function here is non-blocking: failures are logged and reported in the
result dict, never raised to the caller.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Profile
from ..models_booking import Booking
from ..models_invoice import Invoice
from .whatsapp_service import send_payment_confirmation, send_text_message

logger = logging.getLogger(__name__)


def booking_notification_message(booking_data: dict) -> str:
    lines = [
        "🗓️ *New Booking Alert!*",
        "",
        f"*Customer:* {booking_data.get('customer_name')}",
        f"*Email:* {booking_data.get('customer_email')}",
    ]
    if booking_data.get("customer_phone"):
        lines.append(f"*Phone:* {booking_data['customer_phone']}")
    lines.append(f"*Date:* {booking_data.get('booking_date')}")
    lines.append(f"*Time:* {booking_data.get('booking_time')}")
    if booking_data.get("notes"):
        lines.append(f"*Notes:* {booking_data['notes']}")
    lines.extend(["", "A new appointment has been booked for your business!"])
    return "\n".join(lines)


def booking_confirmation_message(booking: Booking, payment_confirmed: bool) -> str:
    payment_line = "✅ Payment confirmed" if payment_confirmed else "⏳ Payment pending"
    return (
        f"🎉 New Booking Confirmation\n\n"
        f"📅 {booking.booking_date}\n"
        f"⏰ {booking.booking_time}\n"
        f"👤 {booking.customer_name}\n"
        f"{payment_line}"
    )


async def _send_to_merchant(db: Session, profile: Optional[Profile], message: str, label: str) -> dict:
    if not profile or not profile.whatsapp_number:
        logger.info(f"⚠️ No WhatsApp number configured for {label}, skipping")
        return {"success": True, "message": "No WhatsApp configured"}

    try:
        result = await send_text_message(db, profile.whatsapp_number, message)
    except Exception as e:
        logger.error(f"❌ Failed to send {label} to {profile.whatsapp_number}: {e}")
        return {"success": False, "error": str(e)}

    if result["success"]:
        logger.info(f"✅ {label} sent to merchant {profile.id}")
    return result


async def send_booking_notification(db: Session, profile: Optional[Profile], booking_data: dict) -> dict:
    """Tell the merchant a customer has just booked"""
    return await _send_to_merchant(
        db, profile, booking_notification_message(booking_data), "booking notification"
    )


async def send_booking_confirmation(db: Session, booking: Booking, payment_confirmed: bool = False) -> dict:
    """Tell the merchant a booking is confirmed, with its payment state"""
    profile = db.query(Profile).filter(Profile.id == booking.user_id).first()
    return await _send_to_merchant(
        db, profile, booking_confirmation_message(booking, payment_confirmed), "booking confirmation"
    )


async def notify_invoice_paid(db: Session, invoice: Invoice) -> dict:
    """Send the client a payment confirmation, at most once per invoice"""
    if invoice.whatsapp_paid_sent:
        return {"success": True, "message": "Payment confirmation already sent"}
    if not invoice.client_phone:
        return {"success": False, "error": "No client phone number"}

    try:
        result = await send_payment_confirmation(
            db, invoice.client_phone, invoice.client_name, invoice.invoice_number
        )
    except Exception as e:
        logger.error(f"❌ Payment confirmation for invoice {invoice.invoice_number} failed: {e}")
        return {"success": False, "error": str(e)}

    if result["success"]:
        invoice.whatsapp_paid_sent = True
        db.commit()
    return result
