"""
Platform billing: promo codes, PayFast subscription forms and notifications,
Paystack subscriptions and webhooks
"""

import hashlib
import hmac
import json
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from link2pay.domain.payments import payfast_service
from link2pay.domain.payments.paystack_service import paystack_client
from link2pay.models import (
    PayFastSubscription,
    PromoCode,
    Subscription,
    SubscriptionTransaction,
    utcnow,
)

PLATFORM_PASSPHRASE = "jt7NOE43FZPn"
PAYSTACK_SECRET = "sk_test_paystack"


@pytest.fixture
def promos(db):
    db.add_all(
        [
            PromoCode(code="BETA50", is_active=True, current_uses=0),
            PromoCode(code="DEVJOHN", is_active=True, current_uses=0),
            PromoCode(code="WINTER20", discount_amount=20, is_active=True, current_uses=0),
            PromoCode(code="OLD", is_active=True, expires_at=utcnow() - timedelta(days=1)),
            PromoCode(code="FULL", is_active=True, max_uses=1, current_uses=1),
        ]
    )
    db.commit()


class TestPromoCodes:
    @pytest.mark.parametrize(
        "code,valid,price",
        [
            ("beta50", True, 50.0),
            ("DEVJOHN", True, 0),
            ("WINTER20", True, 75.0),
            ("OLD", False, 95.0),
            ("FULL", False, 95.0),
            ("NOPE", False, 95.0),
        ],
    )
    def test_validate_promo(self, client, promos, code, valid, price):
        response = client.post("/payments/validate-promo", json={"code": code})

        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is valid
        assert body["price"] == price


class TestPayFastSubscribe:
    def test_standard_subscription_form(self, client, db, merchant):
        response = client.post(
            "/payments/payfast/subscribe",
            json={"billing_details": {"name": "Thandi Mokoena", "email": "thandi@example.com"}},
        )

        assert response.status_code == 200
        body = response.json()
        form = body["form_data"]
        assert body["payfast_url"] == "https://sandbox.payfast.co.za/eng/process"
        assert form["amount"] == "95.00"
        assert form["m_payment_id"] == merchant.id
        signature = form.pop("signature")
        assert signature == payfast_service.generate_signature(
            form, PLATFORM_PASSPHRASE, url_encode=True
        )
        db.refresh(merchant)
        assert merchant.subscription_price == 95.0
        assert merchant.trial_ends_at is None

    def test_beta_trial_setup(self, client, db, merchant, promos):
        response = client.post(
            "/payments/payfast/subscribe",
            json={
                "promo_code": " beta50 ",
                "is_trial_setup": True,
                "billing_details": {"name": "Thandi", "email": "thandi@example.com"},
            },
        )

        form = response.json()["form_data"]
        assert form["amount"] == "5.00"
        assert form["recurring_amount"] == "50.00"
        assert form["subscription_type"] == "2"
        assert form["frequency"] == "3"

        db.refresh(merchant)
        assert merchant.discount_applied is True
        assert merchant.trial_ends_at is not None
        promo = db.query(PromoCode).filter(PromoCode.code == "BETA50").one()
        assert promo.current_uses == 1

    def test_developer_code_activates_account(self, client, db, merchant, promos):
        response = client.post(
            "/payments/payfast/subscribe",
            json={
                "promo_code": "DEVJOHN",
                "billing_details": {"email": "thandi@example.com"},
            },
        )

        assert response.json()["dev_account"] is True
        db.refresh(merchant)
        assert merchant.has_active_subscription is True
        assert merchant.subscription_price == 0
        transaction = db.query(SubscriptionTransaction).one()
        assert transaction.reference == "Developer account - DEVJOHN code"


class TestPayFastSubscriptionNotification:
    def signed(self, **fields) -> dict:
        data = {
            "email_address": "thandi@example.com",
            "payment_status": "COMPLETE",
            "pf_payment_id": "1089250",
            "token": "dc0521d3-55fe-269b-fa00-b647310d760f",
            "amount_gross": "95.00",
            "billing_date": "2026-10-25",
        }
        data.update(fields)
        data["signature"] = payfast_service.generate_signature(data, PLATFORM_PASSPHRASE)
        return data

    def test_complete_activates_subscription(self, client, db, merchant):
        response = client.post("/payments/payfast/webhook", data=self.signed())

        assert response.status_code == 200
        db.refresh(merchant)
        assert merchant.has_active_subscription is True
        assert merchant.subscription_status == "active"
        assert merchant.payfast_billing_token == "dc0521d3-55fe-269b-fa00-b647310d760f"
        assert merchant.subscription_amount == 95.0
        assert db.query(PayFastSubscription).count() == 1

    def test_invalid_signature(self, client, db, merchant):
        data = self.signed()
        data["amount_gross"] = "0.01"

        response = client.post("/payments/payfast/webhook", data=data)

        assert response.status_code == 400
        db.refresh(merchant)
        assert not merchant.has_active_subscription

    def test_unknown_subscriber(self, client, merchant):
        response = client.post(
            "/payments/payfast/webhook", data=self.signed(email_address="nobody@example.com")
        )
        assert response.status_code == 404


class TestPayFastCancel:
    def test_cancel_without_token(self, client):
        response = client.post("/payments/payfast/cancel-subscription")
        assert response.status_code == 400

    def test_cancel_with_recovered_token(self, client, db, merchant):
        db.add(
            PayFastSubscription(
                user_id=merchant.id, email=merchant.email, raw_data={"token": "tok-123"}
            )
        )
        merchant.has_active_subscription = True
        db.commit()

        with patch.object(
            payfast_service, "cancel_subscription", new=AsyncMock(return_value={"status": "success"})
        ) as mock_cancel:
            response = client.post("/payments/payfast/cancel-subscription")

        assert response.status_code == 200
        assert mock_cancel.await_args.args[0] == "tok-123"
        db.refresh(merchant)
        assert merchant.has_active_subscription is False
        assert merchant.subscription_status == "cancelled"
        assert merchant.payfast_billing_token is None


class TestSubscriptionStatus:
    def test_trial_days_left(self, client, db, merchant):
        merchant.trial_ends_at = utcnow() + timedelta(days=3, hours=2)
        db.commit()

        body = client.get("/payments/subscription-status").json()

        assert body["is_trial_active"] is True
        assert body["trial_days_left"] == 4
        assert body["requires_payment"] is False

    def test_expired_trial_requires_payment(self, client, db, merchant):
        client.post("/payments/simulate-trial-end")

        body = client.get("/payments/subscription-status").json()

        assert body["is_trial_active"] is False
        assert body["trial_days_left"] == 0
        assert body["requires_payment"] is True


class TestPaystackSubscription:
    def test_create_subscription_with_trial(self, client, db, merchant, promos):
        with patch.object(
            paystack_client, "create_customer", new=AsyncMock(return_value={"customer_code": "CUS_1"})
        ), patch.object(
            paystack_client, "create_plan", new=AsyncMock(return_value={"plan_code": "link2pay-beta50"})
        ), patch.object(
            paystack_client,
            "create_subscription",
            new=AsyncMock(return_value={"subscription_code": "SUB_1"}),
        ):
            response = client.post(
                "/payments/paystack/create-subscription",
                json={"email": "thandi@example.com", "full_name": "Thandi Mokoena", "promo_code": "beta50"},
            )

        assert response.status_code == 200
        body = response.json()
        assert body["subscription_code"] == "SUB_1"
        assert body["amount"] == 50.0
        assert body["promo_applied"] == "BETA50"

        db.refresh(merchant)
        assert merchant.trial_used is True
        assert merchant.paystack_customer_code == "CUS_1"
        assert db.query(Subscription).one().paystack_plan_code == "link2pay-beta50"

    def test_trial_can_only_be_used_once(self, client, db, merchant):
        merchant.trial_used = True
        db.commit()

        response = client.post(
            "/payments/paystack/create-subscription",
            json={"email": "thandi@example.com", "full_name": "Thandi"},
        )
        assert response.status_code == 400

    def test_post_trial_requires_expired_trial(self, client, db, merchant):
        merchant.trial_used = True
        merchant.trial_ends_at = utcnow() + timedelta(days=2)
        merchant.paystack_customer_code = "CUS_1"
        db.commit()

        response = client.post(
            "/payments/paystack/setup-post-trial", json={"email": "thandi@example.com"}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Trial has not expired yet"


def paystack_post(client, payload: dict, signature: str = None):
    body = json.dumps(payload).encode()
    if signature is None:
        signature = hmac.new(PAYSTACK_SECRET.encode(), body, hashlib.sha512).hexdigest()
    headers = {"Content-Type": "application/json"}
    if signature:
        headers["x-paystack-signature"] = signature
    return client.post("/payments/paystack/webhook", content=body, headers=headers)


class TestPaystackWebhook:
    @pytest.fixture
    def subscribed(self, db, merchant):
        merchant.has_active_subscription = True
        merchant.paystack_customer_code = "CUS_1"
        db.add(
            Subscription(user_id=merchant.id, paystack_subscription_code="SUB_1", status="active")
        )
        db.commit()
        return merchant

    def failure_event(self):
        return {
            "event": "invoice.payment_failed",
            "data": {"subscription": {"subscription_code": "SUB_1"}, "customer": {"customer_code": "CUS_1"}},
        }

    def test_missing_signature(self, client, subscribed):
        response = paystack_post(client, self.failure_event(), signature="")
        assert response.status_code == 401

    def test_bad_signature(self, client, subscribed):
        response = paystack_post(client, self.failure_event(), signature="deadbeef")
        assert response.status_code == 401

    def test_third_failure_cancels_subscription(self, client, db, subscribed):
        for _ in range(2):
            assert paystack_post(client, self.failure_event()).status_code == 200
        db.refresh(subscribed)
        assert subscribed.billing_failures == 2
        assert subscribed.has_active_subscription is True

        paystack_post(client, self.failure_event())

        db.refresh(subscribed)
        assert subscribed.billing_failures == 3
        assert subscribed.has_active_subscription is False
        assert db.query(Subscription).one().status == "cancelled"

    def test_successful_charge_resets_failures(self, client, db, subscribed):
        subscribed.billing_failures = 2
        db.commit()

        paystack_post(
            client,
            {
                "event": "charge.success",
                "data": {
                    "subscription": {
                        "subscription_code": "SUB_1",
                        "next_payment_date": "2026-11-18T00:00:00.000Z",
                    },
                    "customer": {"customer_code": "CUS_1"},
                },
            },
        )

        db.refresh(subscribed)
        assert subscribed.billing_failures == 0
        assert subscribed.has_active_subscription is True
        assert db.query(Subscription).one().next_billing_date is not None

    def test_subscription_disable(self, client, db, subscribed):
        paystack_post(
            client, {"event": "subscription.disable", "data": {"subscription_code": "SUB_1"}}
        )

        db.refresh(subscribed)
        assert subscribed.has_active_subscription is False
        assert subscribed.cancelled_at is not None
        assert db.query(Subscription).one().status == "cancelled"
