"""Booking service - availability, time slots, public bookings and PayFast booking payments"""

import logging
import time
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import API_BASE_URL, FRONTEND_URL
from ...models import Profile
from ...models_booking import Booking, BookingTimeSlot, BookingTransaction
from ...security_utils import decrypt_credential
from ...services.notification_service import send_booking_confirmation, send_booking_notification
from ..payments import payfast_service
from .repository import BookingRepository
from .schemas import AvailabilityUpdate, BookingCreate, BookingPaymentRequest

logger = logging.getLogger(__name__)

SLOT_MINUTES = 60


def js_day_of_week(date_str: str) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (datetime.strptime(date_str, "%Y-%m-%d").weekday() + 1) % 7


def _to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def generate_time_slots(start_time: str, end_time: str) -> list[str]:
    """One-hour slot start times in [start_time, end_time)"""
    slots = []
    current = _to_minutes(start_time)
    end = _to_minutes(end_time)
    while current < end:
        slots.append(f"{current // 60:02d}:{current % 60:02d}")
        current += SLOT_MINUTES
    return slots


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    # ------------------------------------------------------------------
    # Availability and slots
    # ------------------------------------------------------------------

    def get_availability(self, user_id: str) -> list:
        rows = self.repo.get_availability(self.db, user_id)
        if not rows:
            logger.info(f"📅 Creating default availability for {user_id}")
            self.repo.create_default_availability(self.db, user_id)
            rows = self.repo.get_availability(self.db, user_id)
        return rows

    def update_availability(self, user: Profile, data: AvailabilityUpdate) -> list:
        self.repo.replace_availability(
            self.db, user.id, [day.model_dump() for day in data.days]
        )
        logger.info(f"✅ Availability updated for {user.id}")
        return self.repo.get_availability(self.db, user.id)

    def _require_merchant(self, user_id: str) -> Profile:
        profile = self.repo.get_profile(self.db, user_id)
        if not profile:
            raise HTTPException(status_code=404, detail="Business not found")
        return profile

    def get_public_slots(self, user_id: str, date: str) -> list[dict]:
        self._require_merchant(user_id)
        try:
            day_of_week = js_day_of_week(date)
        except ValueError as e:
            raise HTTPException(status_code=400, detail="Date must be in YYYY-MM-DD format") from e

        self.get_availability(user_id)
        availability = self.repo.get_day_availability(self.db, user_id, day_of_week)
        if not availability or not availability.is_available:
            return []

        booked = {slot.time_slot: slot for slot in self.repo.get_slots_for_date(self.db, user_id, date)}
        result = []
        for time_slot in generate_time_slots(availability.start_time, availability.end_time):
            existing = booked.get(time_slot)
            result.append(
                {
                    "time": time_slot,
                    "is_booked": bool(existing and existing.is_booked),
                    "booking_id": existing.booking_id if existing else None,
                }
            )
        return result

    def mark_time_slot(
        self, user_id: str, date: str, time_slot: str, booking_id: Optional[str] = None
    ) -> BookingTimeSlot:
        """Mark a slot as booked, creating the row if needed"""
        slot = self.repo.get_slot(self.db, user_id, date, time_slot)
        if slot:
            slot.is_booked = True
            slot.booking_id = booking_id
        else:
            slot = BookingTimeSlot(
                user_id=user_id,
                date=date,
                time_slot=time_slot,
                is_booked=True,
                booking_id=booking_id,
            )
            self.db.add(slot)
        self.db.commit()
        logger.info(f"📅 Slot {date} {time_slot} booked for {user_id}")
        return slot

    def _mark_slot_quietly(self, booking: Booking) -> None:
        try:
            self.mark_time_slot(booking.user_id, booking.booking_date, booking.booking_time, booking.id)
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"❌ Slot {booking.booking_date} {booking.booking_time} already taken: {e}")
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to mark slot for booking {booking.id}: {e}")

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    async def create_public_booking(self, user_id: str, data: BookingCreate) -> Booking:
        merchant = self._require_merchant(user_id)

        self.get_availability(user_id)
        availability = self.repo.get_day_availability(
            self.db, user_id, js_day_of_week(data.booking_date)
        )
        if not availability or not availability.is_available:
            raise HTTPException(status_code=409, detail="Business is not available on this day")
        if data.booking_time not in generate_time_slots(availability.start_time, availability.end_time):
            raise HTTPException(status_code=409, detail="Time is outside business hours")

        slot = self.repo.get_slot(self.db, user_id, data.booking_date, data.booking_time)
        if slot and slot.is_booked:
            raise HTTPException(status_code=409, detail="This time slot is already booked")

        product = None
        if data.product_id:
            product = self.repo.get_product(self.db, data.product_id, user_id)
            if not product:
                raise HTTPException(status_code=404, detail="Product not found")

        booking_data = {
            "customer_name": data.customer_name,
            "customer_email": data.customer_email,
            "customer_phone": data.customer_phone,
            "booking_date": data.booking_date,
            "booking_time": data.booking_time,
            "notes": data.notes,
            "product_id": product.id if product else None,
        }

        if merchant.booking_payments_enabled:
            booking_data["status"] = "pending"
            booking_data["payment_status"] = "pending"
            booking_data["amount_due"] = product.price if product else merchant.default_booking_deposit
        else:
            booking_data["status"] = "confirmed"

        booking = self.repo.create_booking(self.db, user_id, **booking_data)
        logger.info(f"📅 Booking {booking.id} created for {user_id} ({booking.status})")

        # Paid bookings hold their slot only once PayFast confirms payment
        if not merchant.booking_payments_enabled:
            self._mark_slot_quietly(booking)

        await send_booking_notification(self.db, merchant, booking_data)
        return booking

    def list_bookings(self, user: Profile, status: Optional[str] = None, date: Optional[str] = None):
        return self.repo.list_bookings(self.db, user.id, status, date)

    def update_status(self, booking_id: str, status: str, user: Profile) -> Booking:
        booking = self.repo.get_user_booking(self.db, booking_id, user.id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        booking.status = status
        self.db.commit()
        self.db.refresh(booking)
        return booking

    # ------------------------------------------------------------------
    # PayFast booking payments
    # ------------------------------------------------------------------

    def create_payfast_payment(self, data: BookingPaymentRequest) -> dict:
        booking = self.repo.get_booking(self.db, data.booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")

        merchant = self.repo.get_profile(self.db, booking.user_id)
        if not merchant or not merchant.payfast_merchant_id or not merchant.payfast_merchant_key:
            raise HTTPException(status_code=400, detail="Payment settings not configured")

        payment_id = f"booking_{booking.id}_{int(time.time() * 1000)}"
        first, last = payfast_service.split_name(data.customer_name, last_default="")
        payment_data = {
            "merchant_id": merchant.payfast_merchant_id,
            "merchant_key": merchant.payfast_merchant_key,
            "return_url": f"{FRONTEND_URL}/booking-payment-success?booking_id={booking.id}",
            "cancel_url": f"{FRONTEND_URL}/booking-payment-cancelled?booking_id={booking.id}",
            "notify_url": f"{API_BASE_URL}/bookings/payfast/itn",
            "name_first": first,
            "name_last": last,
            "email_address": data.customer_email,
            "m_payment_id": payment_id,
            "amount": f"{data.amount:.2f}",
            "item_name": f"Booking Payment - {data.customer_name}",
            "item_description": f"Payment for booking on {booking.booking_date}",
            "custom_str1": booking.user_id,
            "custom_str2": booking.id,
            "custom_str3": "booking_payment",
        }
        passphrase = decrypt_credential(merchant.payfast_passphrase)
        payment_data["signature"] = payfast_service.generate_signature(
            payment_data, passphrase, url_encode=True
        )

        booking.payfast_payment_id = payment_id
        booking.payment_status = "pending"
        self.db.add(
            BookingTransaction(
                booking_id=booking.id,
                user_id=booking.user_id,
                transaction_type="full",
                amount=data.amount,
                status="pending",
                payfast_payment_id=payment_id,
                payfast_data=payment_data,
            )
        )
        self.db.commit()
        logger.info(f"💳 Booking payment {payment_id} created for R{data.amount:.2f}")

        return {
            "success": True,
            "payment_url": payfast_service.build_process_url(
                payment_data, merchant.payfast_mode or "live"
            ),
            "payment_id": payment_id,
        }

    async def process_itn(self, data: dict) -> str:
        """Apply a PayFast booking ITN; replays of a completed payment are acknowledged only"""
        user_id = data.get("custom_str1")
        booking_id = data.get("custom_str2")
        if not booking_id or not user_id:
            logger.error("❌ Booking ITN missing booking or user id")
            raise HTTPException(status_code=400, detail="Invalid ITN data - missing booking/user ID")

        merchant = self.repo.get_profile(self.db, user_id)
        passphrase = decrypt_credential(merchant.payfast_passphrase) if merchant else None
        if passphrase and not payfast_service.validate_signature(data, passphrase):
            logger.error(f"❌ Invalid booking ITN signature for booking {booking_id}")
            raise HTTPException(status_code=400, detail="Invalid signature")

        payment_id = data.get("m_payment_id")
        if payment_id and self.repo.get_completed_transaction(self.db, payment_id):
            logger.info(f"🔄 Booking ITN {payment_id} already processed")
            return "OK - Already processed"

        booking = self.repo.get_booking(self.db, booking_id)
        if not booking or booking.user_id != user_id:
            logger.error(f"❌ Booking {booking_id} not found for ITN")
            raise HTTPException(status_code=404, detail="Booking not found")

        payment_status = data.get("payment_status")
        try:
            amount = float(data.get("amount_gross") or 0)
        except ValueError:
            amount = 0.0

        transaction = self.repo.get_transaction(self.db, payment_id) if payment_id else None
        if not transaction:
            transaction = BookingTransaction(
                booking_id=booking.id,
                user_id=user_id,
                amount=amount,
                status="pending",
                payfast_payment_id=payment_id,
            )
            self.db.add(transaction)
        transaction.payfast_data = data

        if payment_status == "COMPLETE":
            booking.status = "confirmed"
            booking.payment_status = "paid"
            booking.amount_paid = amount
            transaction.status = "completed"
            transaction.amount = amount
            transaction.transaction_type = (
                "deposit" if data.get("custom_str3") == "deposit" else "full"
            )
            self.db.commit()
            logger.info(f"✅ Booking {booking.id} paid (R{amount:.2f})")

            self._mark_slot_quietly(booking)
            await send_booking_confirmation(self.db, booking, payment_confirmed=True)
        elif payment_status in ("FAILED", "CANCELLED"):
            booking.payment_status = "failed"
            transaction.status = "failed"
            self.db.commit()
            logger.warning(f"⚠️ Booking {booking.id} payment {payment_status.lower()}")
        else:
            self.db.commit()
            logger.info(f"ℹ️ Booking ITN status {payment_status} stored for {booking.id}")

        return "OK"

    async def confirm_payment(self, booking_id: Optional[str]) -> dict:
        """Return-URL fallback for when the ITN is late or never arrives"""
        if not booking_id:
            raise HTTPException(status_code=400, detail="Booking ID is required")

        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")

        if booking.payment_status == "paid" and booking.status == "confirmed":
            return {"success": True, "message": "Booking already confirmed", "booking_id": booking.id}

        if not booking.payfast_payment_id or booking.payment_status != "pending":
            raise HTTPException(status_code=400, detail="No pending payment for this booking")

        booking.status = "confirmed"
        booking.payment_status = "paid"
        booking.amount_paid = booking.amount_due
        self.db.commit()
        logger.info(f"✅ Booking {booking.id} confirmed from return URL")

        self._mark_slot_quietly(booking)
        await send_booking_confirmation(self.db, booking, payment_confirmed=True)
        return {"success": True, "message": "Booking confirmed", "booking_id": booking.id}
