"""
Availability, public time slots, public bookings and PayFast booking payments
"""

from unittest.mock import patch

import pytest

from link2pay.domain.bookings.service import generate_time_slots, js_day_of_week
from link2pay.domain.payments import payfast_service
from link2pay.models_booking import Booking, BookingTimeSlot, BookingTransaction
from link2pay.models_invoice import Product
from link2pay.security_utils import encrypt_credential

MONDAY = "2026-10-19"
SUNDAY = "2026-10-18"


def booking_payload(**fields) -> dict:
    payload = {
        "customer_name": "Lerato Khumalo",
        "customer_email": "lerato@example.com",
        "customer_phone": "0831234567",
        "booking_date": MONDAY,
        "booking_time": "10:00",
    }
    payload.update(fields)
    return payload


class TestSlotHelpers:
    def test_hourly_slots_exclude_closing_time(self):
        assert generate_time_slots("09:00", "12:00") == ["09:00", "10:00", "11:00"]

    def test_slots_keep_the_opening_minute(self):
        assert generate_time_slots("09:30", "11:00") == ["09:30", "10:30"]

    def test_sunday_is_day_zero(self):
        assert js_day_of_week(SUNDAY) == 0
        assert js_day_of_week(MONDAY) == 1


class TestAvailability:
    def test_defaults_created_on_first_read(self, client):
        days = client.get("/bookings/availability").json()

        assert len(days) == 7
        available = {d["day_of_week"] for d in days if d["is_available"]}
        assert available == {1, 2, 3, 4, 5}

    def test_replace_availability(self, client):
        response = client.put(
            "/bookings/availability",
            json={"days": [{"day_of_week": 6, "start_time": "08:00", "end_time": "12:00"}]},
        )

        assert response.status_code == 200
        days = response.json()
        assert len(days) == 1
        assert days[0]["day_of_week"] == 6

    def test_start_must_precede_end(self, client):
        response = client.put(
            "/bookings/availability",
            json={"days": [{"day_of_week": 1, "start_time": "17:00", "end_time": "09:00"}]},
        )
        assert response.status_code == 422


class TestPublicSlots:
    def test_weekday_slots(self, client, merchant):
        body = client.get(f"/bookings/public/{merchant.id}/slots", params={"date": MONDAY}).json()

        assert body["date"] == MONDAY
        times = [slot["time"] for slot in body["slots"]]
        assert times[0] == "09:00"
        assert times[-1] == "16:00"
        assert len(times) == 8
        assert not any(slot["is_booked"] for slot in body["slots"])

    def test_closed_day_has_no_slots(self, client, merchant):
        body = client.get(f"/bookings/public/{merchant.id}/slots", params={"date": SUNDAY}).json()
        assert body["slots"] == []

    def test_bad_date(self, client, merchant):
        response = client.get(f"/bookings/public/{merchant.id}/slots", params={"date": "19-10-2026"})
        assert response.status_code == 400

    def test_unknown_business(self, client):
        response = client.get("/bookings/public/nobody/slots", params={"date": MONDAY})
        assert response.status_code == 404


class TestPublicBooking:
    def test_free_booking_is_confirmed_and_holds_slot(self, client, db, merchant, mock_zoko):
        response = client.post(f"/bookings/public/{merchant.id}", json=booking_payload())

        assert response.status_code == 201
        assert response.json()["status"] == "confirmed"
        slot = db.query(BookingTimeSlot).one()
        assert slot.is_booked is True
        assert slot.time_slot == "10:00"

        # Merchant was told about the booking
        mock_zoko.assert_awaited_once()
        assert "New Booking Alert" in mock_zoko.await_args.args[1]["message"]

    def test_taken_slot_conflicts(self, client, merchant):
        client.post(f"/bookings/public/{merchant.id}", json=booking_payload())

        response = client.post(
            f"/bookings/public/{merchant.id}", json=booking_payload(customer_name="Someone Else")
        )
        assert response.status_code == 409

    def test_outside_business_hours(self, client, merchant):
        response = client.post(
            f"/bookings/public/{merchant.id}", json=booking_payload(booking_time="18:00")
        )
        assert response.status_code == 409

    def test_closed_day(self, client, merchant):
        response = client.post(
            f"/bookings/public/{merchant.id}", json=booking_payload(booking_date=SUNDAY)
        )
        assert response.status_code == 409

    def test_product_must_belong_to_merchant(self, client, merchant):
        response = client.post(
            f"/bookings/public/{merchant.id}", json=booking_payload(product_id="not-a-product")
        )
        assert response.status_code == 404

    def test_invalid_time_format(self, client, merchant):
        response = client.post(
            f"/bookings/public/{merchant.id}", json=booking_payload(booking_time="10am")
        )
        assert response.status_code == 422

    def test_notification_failure_does_not_block_booking(self, client, merchant):
        # No platform_settings row, so WhatsApp is not configured
        response = client.post(f"/bookings/public/{merchant.id}", json=booking_payload())
        assert response.status_code == 201


@pytest.fixture
def paid_booking(client, db, merchant):
    merchant.booking_payments_enabled = True
    merchant.default_booking_deposit = 150.0
    db.commit()
    response = client.post(f"/bookings/public/{merchant.id}", json=booking_payload())
    return db.query(Booking).filter(Booking.id == response.json()["id"]).one()


def itn(booking: Booking, **fields) -> dict:
    data = {
        "m_payment_id": f"booking_{booking.id}_1760000000000",
        "pf_payment_id": "2233445",
        "payment_status": "COMPLETE",
        "amount_gross": "150.00",
        "custom_str1": booking.user_id,
        "custom_str2": booking.id,
        "custom_str3": "booking_payment",
    }
    data.update(fields)
    return data


class TestBookingPayments:
    def test_paid_booking_waits_for_payment(self, db, paid_booking):
        assert paid_booking.status == "pending"
        assert paid_booking.payment_status == "pending"
        assert paid_booking.amount_due == 150.0
        assert db.query(BookingTimeSlot).count() == 0

    def test_product_price_is_amount_due(self, client, db, merchant):
        merchant.booking_payments_enabled = True
        product = Product(user_id=merchant.id, title="Haircut", price=220.0)
        db.add(product)
        db.commit()

        response = client.post(
            f"/bookings/public/{merchant.id}", json=booking_payload(product_id=product.id)
        )
        assert response.json()["amount_due"] == 220.0

    def test_complete_itn_confirms_booking(self, client, db, paid_booking):
        response = client.post("/bookings/payfast/itn", data=itn(paid_booking))

        assert response.status_code == 200
        assert response.text == "OK"
        db.refresh(paid_booking)
        assert paid_booking.status == "confirmed"
        assert paid_booking.payment_status == "paid"
        assert paid_booking.amount_paid == 150.0
        assert db.query(BookingTimeSlot).one().booking_id == paid_booking.id
        assert db.query(BookingTransaction).one().status == "completed"

    def test_replayed_itn_is_acknowledged_only(self, client, db, paid_booking):
        client.post("/bookings/payfast/itn", data=itn(paid_booking))

        response = client.post("/bookings/payfast/itn", data=itn(paid_booking))

        assert response.text == "OK - Already processed"
        assert db.query(BookingTransaction).count() == 1

    def test_failed_itn(self, client, db, paid_booking):
        client.post("/bookings/payfast/itn", data=itn(paid_booking, payment_status="FAILED"))

        db.refresh(paid_booking)
        assert paid_booking.payment_status == "failed"
        assert paid_booking.status == "pending"
        assert db.query(BookingTimeSlot).count() == 0

    def test_itn_without_booking_reference(self, client):
        response = client.post("/bookings/payfast/itn", data={"payment_status": "COMPLETE"})
        assert response.status_code == 400

    def test_itn_signature_checked_when_merchant_has_passphrase(self, client, db, merchant, paid_booking):
        merchant.payfast_passphrase = encrypt_credential("booking-pass")
        db.commit()

        unsigned = itn(paid_booking)
        assert client.post("/bookings/payfast/itn", data=unsigned).status_code == 400

        signed = itn(paid_booking)
        signed["signature"] = payfast_service.generate_signature(signed, "booking-pass")
        assert client.post("/bookings/payfast/itn", data=signed).status_code == 200

    def test_confirm_payment_fallback(self, client, db, paid_booking):
        paid_booking.payfast_payment_id = f"booking_{paid_booking.id}_1760000000000"
        db.commit()

        response = client.post("/bookings/confirm-payment", json={"booking_id": paid_booking.id})

        assert response.json()["message"] == "Booking confirmed"
        db.refresh(paid_booking)
        assert paid_booking.payment_status == "paid"
        assert paid_booking.amount_paid == 150.0

        again = client.post("/bookings/confirm-payment", json={"booking_id": paid_booking.id})
        assert again.json()["message"] == "Booking already confirmed"

    def test_confirm_payment_needs_initiated_payment(self, client, db, paid_booking):
        response = client.post("/bookings/confirm-payment", json={"booking_id": paid_booking.id})

        assert response.status_code == 400
        assert response.json()["detail"] == "No pending payment for this booking"
        db.refresh(paid_booking)
        assert paid_booking.status == "pending"
        assert paid_booking.payment_status == "pending"
        assert db.query(BookingTimeSlot).count() == 0

    def test_confirm_payment_rejects_failed_payment(self, client, db, paid_booking):
        paid_booking.payfast_payment_id = f"booking_{paid_booking.id}_1760000000000"
        paid_booking.payment_status = "failed"
        db.commit()

        response = client.post("/bookings/confirm-payment", json={"booking_id": paid_booking.id})

        assert response.status_code == 400
        db.refresh(paid_booking)
        assert paid_booking.payment_status == "failed"

    def test_spoofed_forwarded_for_is_rejected(self, client, db, paid_booking):
        with patch("link2pay.domain.bookings.router.PAYFAST_VERIFY_SOURCE_IP", True):
            response = client.post(
                "/bookings/payfast/itn",
                data=itn(paid_booking),
                headers={"X-Forwarded-For": "197.97.145.144"},
            )

        assert response.status_code == 403
        db.refresh(paid_booking)
        assert paid_booking.status == "pending"
        assert paid_booking.payment_status == "pending"
        assert db.query(BookingTransaction).count() == 0

    def test_payment_link_needs_merchant_credentials(self, client, paid_booking):
        response = client.post(
            "/bookings/payfast/payment",
            json={
                "booking_id": paid_booking.id,
                "amount": 150,
                "customer_name": "Lerato Khumalo",
                "customer_email": "lerato@example.com",
            },
        )
        assert response.status_code == 400

    def test_payment_link(self, client, db, merchant, paid_booking):
        merchant.payfast_merchant_id = "10000100"
        merchant.payfast_merchant_key = "46f0cd694581a"
        merchant.payfast_mode = "sandbox"
        db.commit()

        response = client.post(
            "/bookings/payfast/payment",
            json={
                "booking_id": paid_booking.id,
                "amount": 150,
                "customer_name": "Lerato Khumalo",
                "customer_email": "lerato@example.com",
            },
        )

        body = response.json()
        assert body["payment_url"].startswith("https://sandbox.payfast.co.za/eng/process?")
        assert body["payment_id"].startswith(f"booking_{paid_booking.id}_")
        assert db.query(BookingTransaction).one().status == "pending"


class TestMerchantBookings:
    def test_list_and_update_status(self, client, merchant):
        created = client.post(f"/bookings/public/{merchant.id}", json=booking_payload()).json()

        bookings = client.get("/bookings").json()
        assert [b["id"] for b in bookings] == [created["id"]]

        response = client.patch(f"/bookings/{created['id']}/status", json={"status": "completed"})
        assert response.json()["status"] == "completed"

    def test_mark_time_slot_requires_fields(self, client):
        response = client.post("/bookings/mark-time-slot", json={"date": MONDAY})
        assert response.status_code == 400
