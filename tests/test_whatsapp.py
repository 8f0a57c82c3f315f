"""
Phone formatting, quick invoice commands and WhatsApp delivery
"""

import pytest

from link2pay.models_invoice import Invoice, Product
from link2pay.shared.validators import (
    create_whatsapp_link,
    format_e164,
    format_phone_for_whatsapp,
    normalize_phone_for_gupshup,
    parse_quick_invoice_command,
    validate_sa_phone,
)

from .conftest import provider_response


class TestPhoneFormatting:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("0821234567", "+27821234567"),
            ("082 123 4567", "+27821234567"),
            ("821234567", "+27821234567"),
            ("+27821234567", "+27821234567"),
        ],
    )
    def test_format_e164(self, raw, expected):
        assert format_e164(raw) == expected

    def test_whatsapp_digits(self):
        assert format_phone_for_whatsapp("082 123 4567") == "27821234567"
        assert format_phone_for_whatsapp("+27821234567") == "27821234567"

    def test_whatsapp_link(self):
        link = create_whatsapp_link("082 123 4567", "Pay here: https://link2pay.co.za/i/1 & thanks")
        assert link == (
            "https://wa.me/27821234567?text=Pay%20here%3A%20https%3A%2F%2Flink2pay.co.za%2Fi%2F1%20%26%20thanks"
        )

    def test_gupshup_only_accepts_south_african_numbers(self):
        assert normalize_phone_for_gupshup("+27 82 123 4567") == "27821234567"
        assert normalize_phone_for_gupshup("0821234567") == "27821234567"
        assert normalize_phone_for_gupshup("+447911123456") is None
        assert normalize_phone_for_gupshup(None) is None

    def test_validate_sa_phone(self):
        assert validate_sa_phone("0821234567") == "+27821234567"
        with pytest.raises(ValueError):
            validate_sa_phone("+447911123456")


class TestQuickCommandParsing:
    def test_valid_command(self):
        parsed = parse_quick_invoice_command("l2p:Sipho Dlamini:250.50:p-8xk2qa:+27831234567")
        assert parsed == {
            "client_name": "Sipho Dlamini",
            "amount": 250.5,
            "product_id": "p-8xk2qa",
            "phone": "+27831234567",
        }

    def test_prefix_is_case_insensitive(self):
        assert parse_quick_invoice_command("L2P:Sipho:100:P-1:+27831234567")["amount"] == 100.0

    def test_not_a_command(self):
        assert parse_quick_invoice_command("hello there") is None
        assert parse_quick_invoice_command("l2p:Sipho:abc:P-1:+27831234567") is None

    def test_blank_client_name(self):
        parsed = parse_quick_invoice_command("l2p:  :100:P-1:+27831234567")
        assert parsed == {"error": "Client name cannot be empty"}

    def test_zero_amount(self):
        parsed = parse_quick_invoice_command("l2p:Sipho:0:P-1:+27831234567")
        assert parsed == {"error": "Amount must be greater than 0"}

    def test_bad_phone(self):
        parsed = parse_quick_invoice_command("l2p:Sipho:100:P-1:+0831234567")
        assert "Invalid phone number" in parsed["error"]


@pytest.fixture
def product(db, merchant) -> Product:
    product = Product(
        user_id=merchant.id,
        product_id="P-8XK2QA",
        title="Chocolate cake",
        price=180.0,
        delivery_method="collection",
    )
    db.add(product)
    db.commit()
    return product


class TestQuickInvoice:
    def test_creates_and_sends_invoice(self, client, db, product, mock_zoko):
        response = client.post(
            "/whatsapp/quick-invoice", json={"command": "l2p:Sipho:250:p-8xk2qa:+27831234567"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["whatsapp"]["success"] is True
        assert body["invoice"]["total_amount"] == 250.0
        assert body["invoice"]["items"][0]["title"] == "Chocolate cake"

        invoice = db.query(Invoice).one()
        assert invoice.status == "sent"
        assert invoice.client_phone == "+27831234567"
        payload = mock_zoko.await_args.args[1]
        assert payload["templateArgs"][0] == "Sipho"
        assert payload["templateArgs"][2] == "250.00"

    def test_unknown_product(self, client, mock_zoko):
        response = client.post(
            "/whatsapp/quick-invoice", json={"command": "l2p:Sipho:250:P-NOPE:+27831234567"}
        )
        assert response.status_code == 404

    def test_malformed_command(self, client):
        response = client.post("/whatsapp/quick-invoice", json={"command": "invoice Sipho 250"})
        assert response.status_code == 400
        assert "l2p:ClientName" in response.json()["detail"]

    def test_invoice_kept_when_provider_rejects(self, client, db, product, mock_zoko):
        mock_zoko.return_value = provider_response(500, {"message": "Upstream unavailable"})

        body = client.post(
            "/whatsapp/quick-invoice", json={"command": "l2p:Sipho:250:P-8XK2QA:+27831234567"}
        ).json()

        assert body["whatsapp"] == {"success": False, "error": "Upstream unavailable"}
        assert db.query(Invoice).one().status == "pending"


def send_payload(**fields) -> dict:
    payload = {
        "phone": "083 123 4567",
        "client_name": "Sipho",
        "amount": "250.00",
        "invoice_id": "INV-1700000000000",
    }
    payload.update(fields)
    return payload


class TestSend:
    def test_invoice_notification(self, client, mock_zoko):
        response = client.post("/whatsapp/send", json=send_payload())

        assert response.status_code == 200
        assert response.json()["message"] == "WhatsApp invoice notification sent successfully"
        payload = mock_zoko.await_args.args[1]
        assert payload["recipient"] == "27831234567"
        assert payload["templateArgs"][1] == "http://localhost:5173/invoice/INV-1700000000000 "

    def test_payment_confirmation(self, client, mock_zoko):
        response = client.post(
            "/whatsapp/send", json=send_payload(message_type="payment_confirmation")
        )

        assert response.json()["message"] == "WhatsApp payment confirmation sent successfully"
        assert mock_zoko.await_args.args[1]["templateId"] == "invoice_paid"

    def test_rejected_template_falls_back_to_text(self, client, mock_zoko):
        mock_zoko.side_effect = [
            provider_response(400, {"message": "Template not approved"}),
            provider_response(200),
        ]

        body = client.post("/whatsapp/send", json=send_payload()).json()

        assert body["data"] == {"fallback": True}
        text_payload = mock_zoko.await_args_list[1].args[1]
        assert text_payload["type"] == "text"
        assert "R250.00" in text_payload["message"]

    def test_provider_error(self, client, mock_zoko):
        mock_zoko.return_value = provider_response(401, {"message": "Invalid API key"})

        response = client.post("/whatsapp/send", json=send_payload())

        assert response.status_code == 502
        assert response.json()["detail"] == "Invalid API key"

    def test_invalid_phone(self, client):
        response = client.post("/whatsapp/send", json=send_payload(phone="abc"))
        assert response.status_code == 422

    def test_not_configured(self, client):
        response = client.post("/whatsapp/send", json=send_payload())
        assert response.status_code == 503
