"""Subscription service - Link2Pay platform billing through PayFast and Paystack"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import (
    API_BASE_URL,
    FRONTEND_URL,
    PAYFAST_MERCHANT_ID,
    PAYFAST_MERCHANT_KEY,
    PAYFAST_MODE,
    PAYFAST_PASSPHRASE,
)
from ...models import Profile, Subscription, utcnow
from ...security_utils import decrypt_credential
from . import payfast_service
from .paystack_service import BETA_PLAN, STANDARD_PLAN, PaystackError, paystack_client
from .repository import PaymentsRepository
from .schemas import PayFastSubscribeRequest, PaystackPostTrialRequest, PaystackSubscriptionRequest

logger = logging.getLogger(__name__)

DEFAULT_PRICE = 95.00
BETA_PRICE = 50.00
TRIAL_DAYS = 7
TRIAL_SETUP_AMOUNT = "5.00"
BETA_CODE = "BETA50"
DEV_ACCOUNT_CODE = "DEVJOHN"
MAX_BILLING_FAILURES = 3


class SubscriptionService:
    """Service for platform subscription management"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PaymentsRepository()

    def _resolve_promo(self, code: Optional[str]):
        if not code:
            return None
        promo = self.repo.get_active_promo(self.db, code)
        if not promo:
            logger.warning(f"⚠️ Promo code {code} is not active, using standard pricing")
        return promo

    # ------------------------------------------------------------------
    # PayFast
    # ------------------------------------------------------------------

    def activate_dev_account(self, user: Profile) -> dict:
        now = utcnow()
        user.has_active_subscription = True
        user.subscription_price = 0
        user.discount_applied = True
        user.trial_ends_at = now + timedelta(days=365)
        user.billing_start_date = now
        self.db.commit()

        self.repo.record_transaction(
            self.db,
            user.id,
            "subscription_payment",
            0,
            "completed",
            reference=f"Developer account - {DEV_ACCOUNT_CODE} code",
        )
        logger.info(f"✅ Developer account activated for {user.email}")
        return {
            "success": True,
            "dev_account": True,
            "message": "Developer account activated successfully! You have full access.",
        }

    def create_payfast_subscription(self, request: PayFastSubscribeRequest, user: Profile) -> dict:
        """Build the signed PayFast form for the monthly subscription (or trial tokenization)"""
        price = DEFAULT_PRICE
        discount_applied = False

        promo = self._resolve_promo(request.promo_code)
        if promo:
            if promo.code == DEV_ACCOUNT_CODE:
                promo.current_uses = (promo.current_uses or 0) + 1
                return self.activate_dev_account(user)
            if promo.code == BETA_CODE:
                price = BETA_PRICE
                discount_applied = True
            promo.current_uses = (promo.current_uses or 0) + 1

        if not (PAYFAST_MERCHANT_ID and PAYFAST_MERCHANT_KEY and PAYFAST_PASSPHRASE):
            logger.error("❌ PayFast platform credentials are not configured")
            raise HTTPException(status_code=503, detail="PayFast is not configured")

        first, last = payfast_service.split_name(request.billing_details.name)
        now = utcnow()

        data = {
            "merchant_id": PAYFAST_MERCHANT_ID,
            "merchant_key": PAYFAST_MERCHANT_KEY,
            "notify_url": f"{API_BASE_URL}/payments/payfast/webhook",
            "name_first": first,
            "name_last": last,
            "email_address": request.billing_details.email,
            "m_payment_id": user.id,
        }
        if request.is_trial_setup:
            data.update(
                {
                    "return_url": f"{FRONTEND_URL}/dashboard?trial=success",
                    "cancel_url": f"{FRONTEND_URL}/billing-setup?trial=cancelled",
                    "amount": TRIAL_SETUP_AMOUNT,
                    "item_name": "Link2Pay Trial Setup",
                    "subscription_type": "2",
                    "billing_date": (now + timedelta(days=TRIAL_DAYS)).strftime("%Y-%m-%d"),
                    "recurring_amount": f"{price:.2f}",
                    "frequency": "3",
                    "cycles": "0",
                }
            )
        else:
            data.update(
                {
                    "return_url": f"{FRONTEND_URL}/dashboard?subscription=success",
                    "cancel_url": f"{FRONTEND_URL}/billing-setup?subscription=cancelled",
                    "amount": f"{price:.2f}",
                    "item_name": "Link2Pay Monthly Subscription",
                }
            )
        data["signature"] = payfast_service.generate_signature(
            data, PAYFAST_PASSPHRASE, url_encode=True
        )

        user.subscription_price = price
        user.discount_applied = discount_applied
        user.billing_start_date = now
        user.trial_ends_at = now + timedelta(days=TRIAL_DAYS) if request.is_trial_setup else None
        self.db.commit()

        logger.info(f"💳 PayFast subscription form created for {user.email} (R{price:.2f})")
        return {
            "success": True,
            "payfast_url": payfast_service.process_url(PAYFAST_MODE),
            "form_data": data,
            "is_trial_setup": request.is_trial_setup,
        }

    def handle_payfast_subscription_notification(self, data: dict) -> Profile:
        """Apply a PayFast subscription ITN to the profile identified by email"""
        if not payfast_service.validate_signature(data, PAYFAST_PASSPHRASE):
            logger.error("❌ Invalid PayFast subscription webhook signature")
            raise HTTPException(status_code=400, detail="Invalid signature")

        email = data.get("email_address")
        profile = self.repo.get_profile_by_email(self.db, email) if email else None
        if not profile:
            logger.error(f"❌ No profile found for PayFast subscriber {email}")
            raise HTTPException(status_code=404, detail="User not found")

        if data.get("payment_status") == "COMPLETE":
            billing_date = data.get("billing_date")
            profile.subscription_status = "active"
            profile.pf_subscription_id = data.get("pf_payment_id")
            profile.payfast_billing_token = data.get("token")
            profile.subscription_amount = float(data.get("amount_gross") or 0)
            profile.has_active_subscription = True
            profile.trial_expired = False
            profile.billing_start_date = (
                _parse_date(billing_date) if billing_date else None
            ) or utcnow()
            self.db.commit()
            logger.info(f"✅ PayFast subscription activated for {email}")

        self.repo.log_payfast_subscription(self.db, profile, data)
        return profile

    async def cancel_payfast_subscription(self, user: Profile) -> dict:
        token = user.payfast_billing_token
        if not token:
            latest = self.repo.latest_payfast_subscription(self.db, user.id)
            raw = (latest.raw_data or {}) if latest else {}
            token = raw.get("token") or raw.get("billing_token") or raw.get("subscription_token")
            if token:
                logger.info(f"🔄 Recovered billing token for {user.email} from notification log")
                user.payfast_billing_token = token
                self.db.commit()

        if not token:
            raise HTTPException(status_code=400, detail="No active subscription token found")

        merchant_id = user.payfast_merchant_id or PAYFAST_MERCHANT_ID
        merchant_key = user.payfast_merchant_key or PAYFAST_MERCHANT_KEY
        passphrase = decrypt_credential(user.payfast_passphrase) or PAYFAST_PASSPHRASE
        if not (merchant_id and merchant_key and passphrase):
            raise HTTPException(status_code=503, detail="PayFast credentials not configured")

        try:
            result = await payfast_service.cancel_subscription(token, merchant_id, passphrase)
        except payfast_service.PayFastError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

        user.has_active_subscription = False
        user.cancelled_at = utcnow()
        user.payfast_billing_token = None
        user.trial_expired = True
        user.subscription_status = "cancelled"
        self.db.commit()

        try:
            self.repo.record_transaction(
                self.db,
                user.id,
                "cancellation",
                0,
                "completed",
                reference="Subscription cancelled by user",
                payfast_payment_id=token,
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to record cancellation for {user.email}: {e}")

        logger.info(f"✅ Subscription cancelled for {user.email}")
        return {"success": True, "message": "Subscription cancelled successfully", "data": result}

    # ------------------------------------------------------------------
    # Manual state changes and status
    # ------------------------------------------------------------------

    def activate_subscription(self, user: Profile) -> dict:
        user.has_active_subscription = True
        user.subscription_status = "active"
        user.trial_expired = False
        self.db.commit()
        self.repo.record_transaction(
            self.db,
            user.id,
            "subscription_payment",
            5,
            "completed",
            reference="Manual activation for testing",
        )
        return {"success": True, "message": "Subscription activated"}

    def simulate_trial_end(self, user: Profile) -> dict:
        trial_ends_at = utcnow() - timedelta(days=1)
        user.trial_ends_at = trial_ends_at

        subscriptions = self.repo.get_subscriptions(self.db, user.id)
        for subscription in subscriptions:
            subscription.trial_end_date = trial_ends_at
        self.db.commit()

        return {
            "success": True,
            "message": "Trial end simulated successfully",
            "trial_ends_at": trial_ends_at.isoformat(),
            "updated_profile": True,
            "updated_subscription": len(subscriptions) > 0,
        }

    def get_subscription_status(self, user: Profile) -> dict:
        now = utcnow()
        is_trial_active = bool(user.trial_ends_at and user.trial_ends_at > now)
        trial_days_left = 0
        if user.trial_ends_at:
            trial_days_left = max(0, math.ceil((user.trial_ends_at - now).total_seconds() / 86400))

        has_active = bool(user.has_active_subscription)
        return {
            "has_active_subscription": has_active,
            "is_trial_active": is_trial_active,
            "trial_days_left": trial_days_left,
            "requires_payment": not has_active and not is_trial_active,
            "subscription_price": user.subscription_price,
            "discount_applied": bool(user.discount_applied),
            "subscription_status": user.subscription_status,
        }

    def validate_promo(self, code: str) -> dict:
        promo = self.repo.get_active_promo(self.db, code)
        if not promo:
            return {"valid": False, "code": code.strip().upper(), "price": DEFAULT_PRICE}

        price = DEFAULT_PRICE
        if promo.code == BETA_CODE:
            price = BETA_PRICE
        elif promo.code == DEV_ACCOUNT_CODE:
            price = 0
        elif promo.discount_amount:
            price = max(0, DEFAULT_PRICE - promo.discount_amount)
        return {"valid": True, "code": promo.code, "price": price}

    # ------------------------------------------------------------------
    # Paystack
    # ------------------------------------------------------------------

    async def create_paystack_subscription(
        self, request: PaystackSubscriptionRequest, user: Profile
    ) -> dict:
        if user.trial_used:
            raise HTTPException(status_code=400, detail="Free trial has already been used")
        if not paystack_client.is_available():
            raise HTTPException(status_code=503, detail="Paystack is not configured")

        plan = STANDARD_PLAN
        promo_applied = None
        if request.promo_code and request.promo_code.strip().upper() == BETA_CODE:
            if self.repo.get_active_promo(self.db, BETA_CODE):
                plan = BETA_PLAN
                promo_applied = BETA_CODE

        now = utcnow()
        trial_end = now + timedelta(days=TRIAL_DAYS)

        try:
            customer_code = user.paystack_customer_code
            if not customer_code:
                first, last = payfast_service.split_name(
                    request.full_name, default="", last_default=""
                )
                customer = await paystack_client.create_customer(
                    request.email, first, last, user.id
                )
                customer_code = customer.get("customer_code")
                user.paystack_customer_code = customer_code
                self.db.commit()

            await paystack_client.create_plan(plan["name"], plan["amount"], plan["plan_code"])
            subscription_data = await paystack_client.create_subscription(
                customer_code, plan["plan_code"], start_date=trial_end.isoformat()
            )
        except PaystackError as e:
            logger.error(f"❌ Paystack subscription setup failed for {user.email}: {e}")
            raise HTTPException(status_code=400, detail=str(e)) from e

        subscription = Subscription(
            user_id=user.id,
            paystack_subscription_code=subscription_data.get("subscription_code"),
            paystack_plan_code=plan["plan_code"],
            status="active",
            start_date=now,
            trial_end_date=trial_end,
            promo_applied=promo_applied,
            amount=plan["amount"] / 100,
            currency="ZAR",
        )
        self.db.add(subscription)
        user.trial_used = True
        user.trial_ends_at = trial_end
        user.has_active_subscription = True
        self.db.commit()

        logger.info(f"✅ Paystack subscription created for {user.email} ({plan['plan_code']})")
        return {
            "success": True,
            "subscription_code": subscription.paystack_subscription_code,
            "trial_end_date": trial_end.isoformat(),
            "amount": plan["amount"] / 100,
            "promo_applied": promo_applied,
        }

    async def setup_paystack_post_trial(self, request: PaystackPostTrialRequest, user: Profile) -> dict:
        """Start the first paid charge once the free trial is over"""
        if user.has_active_subscription:
            raise HTTPException(status_code=400, detail="User already has an active subscription")
        if not user.trial_used:
            raise HTTPException(status_code=400, detail="Trial has not been used yet")
        if user.trial_ends_at and user.trial_ends_at > utcnow():
            raise HTTPException(status_code=400, detail="Trial has not expired yet")
        if not user.paystack_customer_code:
            raise HTTPException(status_code=400, detail="No Paystack customer found")
        if not paystack_client.is_available():
            raise HTTPException(status_code=503, detail="Paystack is not configured")

        final_price = int(round((user.subscription_price or DEFAULT_PRICE) * 100))
        plan_name = BETA_PLAN["name"] if user.discount_applied else STANDARD_PLAN["name"]

        try:
            plans = await paystack_client.list_plans()
            plan = next(
                (p for p in plans if p.get("name") == plan_name and p.get("amount") == final_price),
                None,
            )
            if not plan:
                plan = await paystack_client.create_plan(plan_name, final_price)
            plan_code = plan.get("plan_code")

            transaction = await paystack_client.initialize_transaction(
                request.email,
                final_price,
                f"{FRONTEND_URL}/dashboard?payment=success",
                {
                    "user_id": user.id,
                    "plan_code": plan_code,
                    "customer_code": user.paystack_customer_code,
                    "subscription_setup": True,
                    "post_trial_payment": True,
                    "final_price": final_price,
                },
            )
        except PaystackError as e:
            logger.error(f"❌ Paystack post-trial setup failed for {user.email}: {e}")
            raise HTTPException(status_code=400, detail=str(e)) from e

        return {
            "success": True,
            "checkout_url": transaction.get("authorization_url"),
            "access_code": transaction.get("access_code"),
            "reference": transaction.get("reference"),
        }


def _parse_date(value: str):
    for fmt in ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(value[:19], fmt)
        except ValueError:
            continue
    return None
