"""
Booking, Availability and Booking Payment Models
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from .database import Base
from .models import generate_uuid, utcnow


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(32), nullable=True)
    booking_date = Column(String(10), nullable=False)  # YYYY-MM-DD
    booking_time = Column(String(5), nullable=False)  # HH:MM
    notes = Column(Text, nullable=True)
    status = Column(String(50), default="pending")  # pending, confirmed, cancelled, completed
    payment_status = Column(String(50), nullable=True)  # pending, paid, failed
    amount_due = Column(Float, nullable=True)
    amount_paid = Column(Float, nullable=True)
    payfast_payment_id = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class BookingTimeSlot(Base):
    __tablename__ = "booking_time_slots"
    __table_args__ = (UniqueConstraint("user_id", "date", "time_slot", name="uq_booking_slot"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    date = Column(String(10), nullable=False)
    time_slot = Column(String(5), nullable=False)
    is_booked = Column(Boolean, default=False)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class BookingTransaction(Base):
    __tablename__ = "booking_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id"), index=True, nullable=False)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    transaction_type = Column(String(20), default="full")  # full, deposit
    amount = Column(Float, nullable=False)
    status = Column(String(50), default="pending")  # pending, completed, failed
    payfast_payment_id = Column(String(100), index=True, nullable=True)
    payfast_data = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class AvailabilitySetting(Base):
    """Weekly opening hours. day_of_week follows JavaScript: 0 = Sunday."""

    __tablename__ = "availability_settings"
    __table_args__ = (UniqueConstraint("user_id", "day_of_week", name="uq_availability_day"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(String(5), default="09:00")
    end_time = Column(String(5), default="17:00")
    is_available = Column(Boolean, default=True)
