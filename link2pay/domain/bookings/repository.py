"""Bookings repository - Database operations for bookings, availability and slots"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Profile
from ...models_booking import AvailabilitySetting, Booking, BookingTimeSlot, BookingTransaction
from ...models_invoice import Product

# Monday to Friday, using 0 = Sunday
DEFAULT_WORKING_DAYS = {1, 2, 3, 4, 5}


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_profile(db: Session, user_id: str) -> Optional[Profile]:
        return db.query(Profile).filter(Profile.id == user_id).first()

    @staticmethod
    def get_availability(db: Session, user_id: str) -> list[AvailabilitySetting]:
        return (
            db.query(AvailabilitySetting)
            .filter(AvailabilitySetting.user_id == user_id)
            .order_by(AvailabilitySetting.day_of_week)
            .all()
        )

    @staticmethod
    def create_default_availability(db: Session, user_id: str) -> list[AvailabilitySetting]:
        rows = [
            AvailabilitySetting(
                user_id=user_id,
                day_of_week=day,
                start_time="09:00",
                end_time="17:00",
                is_available=day in DEFAULT_WORKING_DAYS,
            )
            for day in range(7)
        ]
        db.add_all(rows)
        db.commit()
        return rows

    @staticmethod
    def replace_availability(db: Session, user_id: str, days: list[dict]) -> None:
        db.query(AvailabilitySetting).filter(AvailabilitySetting.user_id == user_id).delete()
        db.add_all([AvailabilitySetting(user_id=user_id, **day) for day in days])
        db.commit()

    @staticmethod
    def get_day_availability(db: Session, user_id: str, day_of_week: int) -> Optional[AvailabilitySetting]:
        return (
            db.query(AvailabilitySetting)
            .filter(
                AvailabilitySetting.user_id == user_id,
                AvailabilitySetting.day_of_week == day_of_week,
            )
            .first()
        )

    @staticmethod
    def get_slots_for_date(db: Session, user_id: str, date: str) -> list[BookingTimeSlot]:
        return (
            db.query(BookingTimeSlot)
            .filter(BookingTimeSlot.user_id == user_id, BookingTimeSlot.date == date)
            .all()
        )

    @staticmethod
    def get_slot(db: Session, user_id: str, date: str, time_slot: str) -> Optional[BookingTimeSlot]:
        return (
            db.query(BookingTimeSlot)
            .filter(
                BookingTimeSlot.user_id == user_id,
                BookingTimeSlot.date == date,
                BookingTimeSlot.time_slot == time_slot,
            )
            .first()
        )

    @staticmethod
    def get_booking(db: Session, booking_id: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_user_booking(db: Session, booking_id: str, user_id: str) -> Optional[Booking]:
        return (
            db.query(Booking).filter(Booking.id == booking_id, Booking.user_id == user_id).first()
        )

    @staticmethod
    def list_bookings(
        db: Session, user_id: str, status: Optional[str] = None, date: Optional[str] = None
    ) -> list[Booking]:
        query = db.query(Booking).filter(Booking.user_id == user_id)
        if status:
            query = query.filter(Booking.status == status)
        if date:
            query = query.filter(Booking.booking_date == date)
        return query.order_by(Booking.booking_date.desc(), Booking.booking_time.desc()).all()

    @staticmethod
    def create_booking(db: Session, user_id: str, **booking_data) -> Booking:
        booking = Booking(user_id=user_id, **booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def get_product(db: Session, product_id: str, user_id: str) -> Optional[Product]:
        return (
            db.query(Product).filter(Product.id == product_id, Product.user_id == user_id).first()
        )

    @staticmethod
    def get_completed_transaction(db: Session, payment_id: str) -> Optional[BookingTransaction]:
        return (
            db.query(BookingTransaction)
            .filter(
                BookingTransaction.payfast_payment_id == payment_id,
                BookingTransaction.status == "completed",
            )
            .first()
        )

    @staticmethod
    def get_transaction(db: Session, payment_id: str) -> Optional[BookingTransaction]:
        return (
            db.query(BookingTransaction)
            .filter(BookingTransaction.payfast_payment_id == payment_id)
            .order_by(BookingTransaction.created_at.desc())
            .first()
        )
