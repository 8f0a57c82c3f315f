"""
Store handles, merchant profile, PayFast credentials, products, sections and the public store
"""

from link2pay.domain.storefront.service import generate_product_code, generate_unique_handle
from link2pay.models_invoice import Product
from link2pay.security_utils import decrypt_credential

from .conftest import make_profile


class TestHandles:
    def test_handle_from_business_name(self, db):
        assert generate_unique_handle(db, "Thandi's Bakes & Treats!") == "thandisbakestreats"

    def test_handle_is_truncated(self, db):
        assert generate_unique_handle(db, "The Very Long Business Name Of Durban") == "theverylongbusinessn"

    def test_taken_handles_get_suffix(self, db):
        make_profile(db, email="one@example.com", store_handle="bakes")
        make_profile(db, email="two@example.com", store_handle="bakes1")

        assert generate_unique_handle(db, "Bakes") == "bakes2"

    def test_empty_name_falls_back_to_store(self, db):
        assert generate_unique_handle(db, "!!!") == "store"

    def test_endpoint(self, client):
        response = client.post("/storefront/unique-handle", json={"business_name": "Sipho Braai"})
        assert response.json() == {"unique_handle": "siphobraai"}

    def test_product_code_shape(self):
        code = generate_product_code()
        assert code.startswith("P-")
        assert len(code) == 8
        assert code[2:].isalnum() and code[2:].upper() == code[2:]


class TestProfile:
    def test_first_update_assigns_handle(self, client, db, merchant):
        response = client.patch("/storefront/profile", json={"store_bio": "Cakes <b>baked</b> daily"})

        assert response.status_code == 200
        body = response.json()
        assert body["store_handle"] == "thandisbakes"
        assert body["store_bio"] == "Cakes &lt;b&gt;baked&lt;/b&gt; daily"

    def test_taken_handle_conflicts(self, client, db):
        make_profile(db, email="other@example.com", store_handle="sweet-treats")

        response = client.patch("/storefront/profile", json={"store_handle": "Sweet-Treats"})

        assert response.status_code == 409

    def test_invalid_color(self, client):
        response = client.patch("/storefront/profile", json={"primary_color": "green"})
        assert response.status_code == 422

    def test_whatsapp_number_is_normalized(self, client):
        response = client.patch("/storefront/profile", json={"whatsapp_number": "083 123 4567"})
        assert response.json()["whatsapp_number"] == "+27831234567"

    def test_merchant_key_is_masked(self, client, db, merchant):
        merchant.payfast_merchant_key = "46f0cd694581a"
        db.commit()

        body = client.get("/storefront/profile").json()

        assert body["payfast_merchant_key"] == "*********581a"
        assert body["payfast_configured"] is False


class TestPayFastCredentials:
    def test_saves_encrypted_passphrase(self, client, db, merchant):
        response = client.put(
            "/storefront/payfast-credentials",
            json={
                "merchant_id": "10000100",
                "merchant_key": "46f0cd694581a",
                "passphrase": "my-secret-pass",
                "mode": "sandbox",
            },
        )

        assert response.status_code == 200
        db.refresh(merchant)
        assert merchant.payfast_mode == "sandbox"
        assert merchant.payfast_passphrase != "my-secret-pass"
        assert decrypt_credential(merchant.payfast_passphrase) == "my-secret-pass"

    def test_invalid_credentials(self, client):
        response = client.put(
            "/storefront/payfast-credentials",
            json={"merchant_id": "abc", "merchant_key": "46f0cd694581a"},
        )

        assert response.status_code == 400
        assert "Merchant ID should be numeric" in response.json()["detail"]["errors"]

    def test_test_link(self, client):
        client.put(
            "/storefront/payfast-credentials",
            json={"merchant_id": "10000100", "merchant_key": "46f0cd694581a", "mode": "sandbox"},
        )

        url = client.get("/storefront/payfast-test-link").json()["payment_url"]

        assert url.startswith("https://sandbox.payfast.co.za/eng/process?")
        assert "amount=100.00" in url

    def test_test_link_without_credentials(self, client):
        assert client.get("/storefront/payfast-test-link").status_code == 400


class TestProducts:
    def test_create_assigns_code(self, client):
        response = client.post("/storefront/products", json={"title": "Red velvet", "price": 250})

        assert response.status_code == 201
        assert response.json()["product_id"].startswith("P-")

    def test_custom_code_is_upper_cased_and_unique(self, client):
        first = client.post(
            "/storefront/products", json={"title": "Scones", "price": 60, "product_id": "scone1"}
        )
        assert first.json()["product_id"] == "SCONE1"

        second = client.post(
            "/storefront/products", json={"title": "More scones", "price": 60, "product_id": "SCONE1"}
        )
        assert second.status_code == 409

    def test_price_must_be_positive(self, client):
        response = client.post("/storefront/products", json={"title": "Free", "price": 0})
        assert response.status_code == 422

    def test_update_and_delete(self, client, db):
        product_id = client.post(
            "/storefront/products", json={"title": "Muffins", "price": 80}
        ).json()["id"]

        updated = client.patch(f"/storefront/products/{product_id}", json={"price": 95})
        assert updated.json()["price"] == 95

        assert client.delete(f"/storefront/products/{product_id}").json() == {"message": "Product deleted"}
        assert db.query(Product).count() == 0

    def test_other_merchants_products_are_hidden(self, client, db):
        other = make_profile(db, email="other@example.com")
        product = Product(user_id=other.id, title="Not yours", price=10)
        db.add(product)
        db.commit()

        assert client.get(f"/storefront/products/{product.id}").status_code == 404
        assert client.get("/storefront/products").json() == []


class TestSections:
    def test_section_lifecycle(self, client):
        created = client.post(
            "/storefront/sections",
            json={"section_type": "about", "section_title": "Our story", "section_order": 1},
        )
        assert created.status_code == 201
        section_id = created.json()["id"]

        updated = client.patch(f"/storefront/sections/{section_id}", json={"is_enabled": False})
        assert updated.json()["is_enabled"] is False

        assert client.delete(f"/storefront/sections/{section_id}").status_code == 200
        assert client.get("/storefront/sections").json() == []

    def test_unknown_section(self, client):
        assert client.delete("/storefront/sections/missing").status_code == 404


class TestPublicStore:
    def test_public_store(self, client, db, merchant):
        merchant.store_handle = "thandisbakes"
        db.add_all(
            [
                Product(user_id=merchant.id, product_id="P-ONE", title="Cake", price=200),
                Product(user_id=merchant.id, product_id="P-OFF", title="Retired", price=50, is_active=False),
            ]
        )
        db.commit()

        body = client.get("/storefront/public/ThandisBakes").json()

        assert body["store"]["business_name"] == "Thandi's Bakes"
        assert "payfast_merchant_key" not in body["store"]
        assert [p["product_id"] for p in body["products"]] == ["P-ONE"]

    def test_hidden_store(self, client, db, merchant):
        merchant.store_handle = "thandisbakes"
        merchant.store_visibility = False
        db.commit()

        assert client.get("/storefront/public/thandisbakes").status_code == 404

    def test_unknown_store(self, client):
        assert client.get("/storefront/public/nobody").status_code == 404
