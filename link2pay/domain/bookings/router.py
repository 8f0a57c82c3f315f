"""Bookings router - availability, public booking and PayFast booking payment endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import PAYFAST_VERIFY_SOURCE_IP
from ...database import get_db
from ...models import Profile
from ...rate_limiter import create_rate_limiter
from ...webhook_security import verify_payfast_source
from ..payments.webhooks import read_form
from .schemas import (
    AvailabilityResponse,
    AvailabilityUpdate,
    BookingCreate,
    BookingPaymentRequest,
    BookingResponse,
    BookingStatusUpdate,
    ConfirmPaymentRequest,
    MarkTimeSlotRequest,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])

# 10 bookings per hour per IP
rate_limit_public_booking = create_rate_limiter(
    limit=10, window_seconds=3600, key_prefix="public_booking"
)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


# ============================================================================
# MERCHANT ENDPOINTS
# ============================================================================


@router.get("/availability", response_model=list[AvailabilityResponse])
async def get_availability(
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Weekly availability; defaults to 09:00-17:00 Monday to Friday"""
    return service.get_availability(current_user.id)


@router.put("/availability", response_model=list[AvailabilityResponse])
async def update_availability(
    data: AvailabilityUpdate,
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.update_availability(current_user, data)


@router.get("", response_model=list[BookingResponse])
async def list_bookings(
    status: Optional[str] = Query(None),
    date: Optional[str] = Query(None),
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.list_bookings(current_user, status, date)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: str,
    data: BookingStatusUpdate,
    current_user: Profile = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.update_status(booking_id, data.status, current_user)


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================


@router.get("/public/{user_id}/slots")
async def get_public_slots(
    user_id: str,
    date: str = Query(..., description="YYYY-MM-DD"),
    service: BookingService = Depends(get_booking_service),
):
    return {"date": date, "slots": service.get_public_slots(user_id, date)}


@router.post("/public/{user_id}", response_model=BookingResponse, status_code=201)
async def create_public_booking(
    user_id: str,
    data: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    _rate_limit: None = Depends(rate_limit_public_booking),
):
    """
    Book an appointment from the public storefront.
    No authentication required. Rate limited to 10 per hour per IP.
    """
    return await service.create_public_booking(user_id, data)


@router.post("/mark-time-slot")
async def mark_time_slot(
    data: MarkTimeSlotRequest,
    service: BookingService = Depends(get_booking_service),
):
    if not data.userId or not data.date or not data.timeSlot:
        raise HTTPException(status_code=400, detail="userId, date and timeSlot are required")
    slot = service.mark_time_slot(data.userId, data.date, data.timeSlot, data.bookingId)
    return {"success": True, "slot_id": slot.id}


@router.post("/payfast/payment")
async def create_booking_payment(
    data: BookingPaymentRequest,
    service: BookingService = Depends(get_booking_service),
):
    return service.create_payfast_payment(data)


@router.post("/payfast/itn", response_class=PlainTextResponse)
async def booking_payfast_itn(request: Request, service: BookingService = Depends(get_booking_service)):
    """PayFast ITN for booking payments"""
    if PAYFAST_VERIFY_SOURCE_IP:
        verify_payfast_source(request)

    data = await read_form(request)
    logger.info(
        f"💳 Booking ITN for booking {data.get('custom_str2')}: {data.get('payment_status')}"
    )
    return await service.process_itn(data)


@router.post("/confirm-payment")
async def confirm_booking_payment(
    data: ConfirmPaymentRequest,
    service: BookingService = Depends(get_booking_service),
):
    return await service.confirm_payment(data.booking_id)
