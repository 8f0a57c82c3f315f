"""
Invoices: VAT totals, numbering, rewards hooks, public page, WhatsApp delivery and PDF
"""

import pytest

from link2pay.models_engagement import RewardActivity, UserRewards
from link2pay.models_invoice import Invoice
from link2pay.routes.invoices import InvoiceItemCreate, calculate_totals, generate_invoice_number


def invoice_payload(**fields) -> dict:
    payload = {
        "client_name": "Sipho Dlamini",
        "client_phone": "+27831234567",
        "items": [
            {"title": "Chocolate cake", "quantity": 2, "unit_price": 100},
            {"title": "Cupcakes", "quantity": 1, "unit_price": 50},
        ],
        "vat_enabled": True,
        "delivery_fee": 40,
    }
    payload.update(fields)
    return payload


class TestTotals:
    def test_vat_is_fifteen_percent_of_subtotal(self):
        items = [InvoiceItemCreate(title="Cake", quantity=2, unit_price=100)]
        assert calculate_totals(items, True, 50) == (200.0, 30.0, 280.0)

    def test_no_vat(self):
        items = [InvoiceItemCreate(title="Cake", quantity=3, unit_price=33.33)]
        assert calculate_totals(items, False, 0) == (99.99, 0.0, 99.99)

    def test_invoice_numbers_skip_taken_values(self, db, merchant):
        first = generate_invoice_number(db)
        db.add(Invoice(user_id=merchant.id, invoice_number=first, client_name="A", total_amount=1))
        db.commit()

        second = generate_invoice_number(db)

        assert first.startswith("INV-")
        assert second != first


class TestCreateInvoice:
    def test_create_with_vat(self, client):
        response = client.post("/invoices", json=invoice_payload())

        assert response.status_code == 201
        invoice = response.json()["invoice"]
        assert invoice["subtotal"] == 250.0
        assert invoice["vat_amount"] == 37.5
        assert invoice["total_amount"] == 327.5
        assert invoice["status"] == "pending"
        assert len(invoice["items"]) == 2
        assert invoice["items"][0]["total_price"] == 200.0
        assert response.json()["payment_link"] is None

    def test_client_text_is_escaped(self, client):
        response = client.post(
            "/invoices", json=invoice_payload(client_name="<b>Sipho</b>", vat_enabled=False)
        )
        assert response.json()["invoice"]["client_name"] == "&lt;b&gt;Sipho&lt;/b&gt;"

    def test_requires_items(self, client):
        response = client.post("/invoices", json=invoice_payload(items=[]))
        assert response.status_code == 422

    def test_rewards_hooks(self, client, db, merchant):
        client.post("/invoices", json=invoice_payload())

        created = db.query(RewardActivity).filter(RewardActivity.activity_type == "invoice_created")
        assert created.one().points_earned == 10
        rewards = db.query(UserRewards).filter(UserRewards.user_id == merchant.id).one()
        assert rewards.current_streak == 1
        assert "first_invoice" in rewards.badges

    def test_third_invoice_of_week_has_achievement(self, client):
        messages = [
            client.post("/invoices", json=invoice_payload()).json()["achievement_message"]
            for _ in range(3)
        ]
        assert messages[0] is None
        assert messages[1] is None
        assert "3 invoices this week" in messages[2]

    def test_payment_link_for_payfast_merchant(self, client, db, merchant):
        merchant.payfast_merchant_id = "10000100"
        merchant.payfast_merchant_key = "46f0cd694581a"
        merchant.payfast_mode = "sandbox"
        db.commit()

        link = client.post("/invoices", json=invoice_payload()).json()["payment_link"]

        assert link.startswith("https://sandbox.payfast.co.za/eng/process?")
        assert "amount=327.50" in link


@pytest.fixture
def invoice_id(client):
    return client.post("/invoices", json=invoice_payload()).json()["invoice"]["id"]


class TestInvoiceLifecycle:
    def test_list_filters_by_status(self, client, invoice_id):
        assert len(client.get("/invoices").json()) == 1
        assert client.get("/invoices", params={"status": "paid"}).json() == []

    def test_public_invoice_page(self, client, db, merchant, invoice_id):
        number = db.query(Invoice).one().invoice_number

        body = client.get(f"/invoices/public/{number}").json()

        assert body["invoice"]["id"] == invoice_id
        assert body["business"]["business_name"] == "Thandi's Bakes"

    def test_public_invoice_not_found(self, client):
        assert client.get("/invoices/public/INV-0").status_code == 404

    def test_marking_paid_sends_confirmation_once(self, client, db, invoice_id, mock_zoko):
        response = client.patch(f"/invoices/{invoice_id}/status", json={"status": "paid"})

        assert response.status_code == 200
        assert response.json()["paid_at"] is not None
        assert mock_zoko.await_count == 1
        assert db.query(Invoice).one().whatsapp_paid_sent is True

        client.patch(f"/invoices/{invoice_id}/status", json={"status": "paid"})
        assert mock_zoko.await_count == 1

    def test_unknown_status_rejected(self, client, invoice_id):
        response = client.patch(f"/invoices/{invoice_id}/status", json={"status": "lost"})
        assert response.status_code == 422

    def test_send_whatsapp_marks_sent(self, client, db, invoice_id, mock_zoko):
        response = client.post(f"/invoices/{invoice_id}/send-whatsapp")

        assert response.status_code == 200
        payload = mock_zoko.await_args.args[1]
        assert payload["templateId"] == "invoice_notification"
        assert payload["recipient"] == "27831234567"
        assert db.query(Invoice).one().status == "sent"

    def test_send_whatsapp_not_configured(self, client, invoice_id):
        response = client.post(f"/invoices/{invoice_id}/send-whatsapp")
        assert response.status_code == 503

    def test_pdf_download(self, client, invoice_id):
        response = client.get(f"/invoices/{invoice_id}/pdf")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_other_merchants_invoice_is_hidden(self, client):
        assert client.get("/invoices/does-not-exist").status_code == 404
