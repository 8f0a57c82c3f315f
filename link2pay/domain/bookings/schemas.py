"""Bookings domain schemas - Pydantic models for validation"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _check_date(value: str) -> str:
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError as e:
        raise ValueError("Date must be in YYYY-MM-DD format") from e
    return value


def _check_time(value: str) -> str:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM format")
    return value


class AvailabilityDay(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: str = "09:00"
    end_time: str = "17:00"
    is_available: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _check_time(v)

    @model_validator(mode="after")
    def validate_range(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilityUpdate(BaseModel):
    days: list[AvailabilityDay]

    @field_validator("days")
    @classmethod
    def unique_days(cls, v: list[AvailabilityDay]) -> list[AvailabilityDay]:
        seen = [d.day_of_week for d in v]
        if len(seen) != len(set(seen)):
            raise ValueError("Each day_of_week may only appear once")
        return v


class AvailabilityResponse(BaseModel):
    id: str
    day_of_week: int
    start_time: str
    end_time: str
    is_available: bool

    class Config:
        from_attributes = True


class BookingCreate(BaseModel):
    """Public booking request from a storefront visitor"""

    customer_name: str = Field(min_length=2, max_length=255)
    customer_email: EmailStr
    customer_phone: Optional[str] = Field(None, max_length=32)
    booking_date: str
    booking_time: str
    notes: Optional[str] = Field(None, max_length=2000)
    product_id: Optional[str] = None

    @field_validator("customer_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v

    @field_validator("booking_date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        return _check_date(v)

    @field_validator("booking_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _check_time(v)


class BookingStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        allowed = {"pending", "confirmed", "cancelled", "completed"}
        if v not in allowed:
            raise ValueError(f"Status must be one of: {', '.join(sorted(allowed))}")
        return v


class BookingResponse(BaseModel):
    id: str
    user_id: str
    product_id: Optional[str] = None
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    booking_date: str
    booking_time: str
    notes: Optional[str] = None
    status: str
    payment_status: Optional[str] = None
    amount_due: Optional[float] = None
    amount_paid: Optional[float] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MarkTimeSlotRequest(BaseModel):
    """Field names match the calendar widget that calls this endpoint"""

    userId: Optional[str] = None
    date: Optional[str] = None
    timeSlot: Optional[str] = None
    bookingId: Optional[str] = None


class BookingPaymentRequest(BaseModel):
    booking_id: str
    amount: float = Field(gt=0)
    customer_name: str
    customer_email: EmailStr


class ConfirmPaymentRequest(BaseModel):
    booking_id: Optional[str] = None
