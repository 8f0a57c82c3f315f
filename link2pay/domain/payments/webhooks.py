"""
Payment gateway callbacks: PayFast invoice ITN, PayFast subscription ITN and Paystack events.

PayFast expects a plain 200 "OK"; any other status makes it retry.
Paystack retries on non-2xx, so handler errors are logged and still acknowledged.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from ...config import PAYSTACK_SECRET_KEY
from ...database import get_db
from ...models import Profile, Subscription, utcnow
from ...security_utils import decrypt_credential
from ...services.notification_service import notify_invoice_paid
from ...webhook_security import verify_paystack_webhook
from ..rewards.service import RewardsService
from . import payfast_service
from .paystack_service import paystack_client
from .repository import PaymentsRepository
from .subscription_service import MAX_BILLING_FAILURES, TRIAL_DAYS, SubscriptionService

logger = logging.getLogger(__name__)

webhooks_router = APIRouter(prefix="/payments", tags=["Payment Webhooks"])

INVOICE_STATUS_MAP = {"COMPLETE": "paid", "FAILED": "failed"}


async def read_form(request: Request) -> dict:
    form = await request.form()
    return {key: str(value) for key, value in form.items()}


def invoice_number_from_itn(data: dict) -> Optional[str]:
    item_name = data.get("item_name") or ""
    if item_name.startswith("Invoice #"):
        number = item_name[len("Invoice #"):].strip()
        if number:
            return number
    return data.get("custom_str1") or None


@webhooks_router.post("/payfast/notify", response_class=PlainTextResponse)
async def payfast_invoice_notify(request: Request, db: Session = Depends(get_db)):
    """PayFast ITN for a merchant's invoice payment"""
    data = await read_form(request)
    repo = PaymentsRepository()

    logger.info(
        f"💳 PayFast invoice ITN: merchant={data.get('merchant_id')} status={data.get('payment_status')}"
    )

    merchant = repo.get_profile_by_merchant_id(db, data.get("merchant_id", ""))
    if not merchant:
        logger.error(f"❌ Unknown PayFast merchant {data.get('merchant_id')}")
        raise HTTPException(status_code=404, detail="Merchant not found")

    passphrase = decrypt_credential(merchant.payfast_passphrase)
    if not payfast_service.validate_signature(data, passphrase):
        logger.error(f"❌ Invalid PayFast signature for merchant {merchant.id}")
        raise HTTPException(status_code=400, detail="Invalid signature")

    invoice_number = invoice_number_from_itn(data)
    if not invoice_number:
        raise HTTPException(status_code=400, detail="Invoice number not found")

    invoice = repo.get_invoice_by_number(db, invoice_number)
    if not invoice or invoice.user_id != merchant.id:
        logger.error(f"❌ Invoice {invoice_number} not found for merchant {merchant.id}")
        raise HTTPException(status_code=404, detail="Invoice not found")

    new_status = INVOICE_STATUS_MAP.get(data.get("payment_status"), "pending")
    already_paid = invoice.status == "paid"
    invoice.status = new_status
    if new_status == "paid" and not invoice.paid_at:
        invoice.paid_at = utcnow()
    db.commit()
    logger.info(f"✅ Invoice {invoice_number} marked {new_status}")

    if new_status == "paid" and not already_paid:
        await notify_invoice_paid(db, invoice)
        RewardsService(db).award_points(
            merchant.id, "invoice_paid", 10, {"invoice_number": invoice_number}
        )

    return "OK"


@webhooks_router.post("/payfast/webhook", response_class=PlainTextResponse)
async def payfast_subscription_webhook(request: Request, db: Session = Depends(get_db)):
    """PayFast ITN for Link2Pay's own subscription billing"""
    data = await read_form(request)
    logger.info(
        f"💳 PayFast subscription ITN for {data.get('email_address')}: {data.get('payment_status')}"
    )
    SubscriptionService(db).handle_payfast_subscription_notification(data)
    return "OK"


# ----------------------------------------------------------------------------
# Paystack
# ----------------------------------------------------------------------------


def _parse_paystack_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _profile_for_event(db: Session, data: dict) -> Optional[Profile]:
    repo = PaymentsRepository()
    metadata = data.get("metadata") or {}
    if isinstance(metadata, dict) and metadata.get("user_id"):
        profile = repo.get_profile(db, metadata["user_id"])
        if profile:
            return profile

    subscription_code = (data.get("subscription") or {}).get("subscription_code") or data.get(
        "subscription_code"
    )
    if subscription_code:
        subscription = repo.get_subscription_by_code(db, subscription_code)
        if subscription:
            return repo.get_profile(db, subscription.user_id)

    customer_code = (data.get("customer") or {}).get("customer_code")
    if customer_code:
        return db.query(Profile).filter(Profile.paystack_customer_code == customer_code).first()
    return None


async def handle_payment_success(db: Session, data: dict):
    metadata = data.get("metadata") or {}
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except ValueError:
            metadata = {}

    now = utcnow()

    if metadata.get("subscription_setup"):
        profile = PaymentsRepository().get_profile(db, metadata.get("user_id", ""))
        if not profile:
            logger.error(f"❌ Paystack setup payment for unknown user {metadata.get('user_id')}")
            return

        authorization_code = (data.get("authorization") or {}).get("authorization_code")
        trial_end = now + timedelta(days=TRIAL_DAYS)
        subscription_data = await paystack_client.create_subscription(
            metadata.get("customer_code") or profile.paystack_customer_code,
            metadata.get("plan_code"),
            start_date=trial_end.isoformat(),
            authorization=authorization_code,
        )
        db.add(
            Subscription(
                user_id=profile.id,
                paystack_subscription_code=subscription_data.get("subscription_code"),
                paystack_plan_code=metadata.get("plan_code"),
                status="active",
                start_date=now,
                trial_end_date=trial_end,
                amount=(metadata.get("final_price") or data.get("amount") or 0) / 100,
                currency="ZAR",
            )
        )
        profile.trial_used = True
        profile.trial_ends_at = trial_end
        profile.has_active_subscription = True
        profile.billing_failures = 0
        db.commit()
        logger.info(f"✅ Paystack subscription set up after payment for {profile.email}")
        return

    subscription_code = (data.get("subscription") or {}).get("subscription_code")
    subscription = (
        PaymentsRepository().get_subscription_by_code(db, subscription_code)
        if subscription_code
        else None
    )
    if subscription:
        subscription.status = "active"
        subscription.next_billing_date = _parse_paystack_date(
            (data.get("subscription") or {}).get("next_payment_date")
        )

    profile = _profile_for_event(db, data)
    if profile:
        profile.has_active_subscription = True
        profile.billing_failures = 0
    db.commit()
    logger.info(f"✅ Paystack payment recorded for {profile.email if profile else 'unknown user'}")


def handle_subscription_create(db: Session, data: dict):
    subscription = PaymentsRepository().get_subscription_by_code(
        db, data.get("subscription_code", "")
    )
    if not subscription:
        logger.warning(f"⚠️ subscription.create for unknown code {data.get('subscription_code')}")
        return
    subscription.status = "active"
    subscription.next_billing_date = _parse_paystack_date(data.get("next_payment_date"))
    db.commit()


def handle_payment_failed(db: Session, data: dict):
    profile = _profile_for_event(db, data)
    if not profile:
        logger.warning("⚠️ invoice.payment_failed for unknown subscriber")
        return

    failures = (profile.billing_failures or 0) + 1
    profile.billing_failures = failures
    profile.has_active_subscription = failures < MAX_BILLING_FAILURES

    if failures >= MAX_BILLING_FAILURES:
        subscription_code = (data.get("subscription") or {}).get("subscription_code")
        subscription = (
            PaymentsRepository().get_subscription_by_code(db, subscription_code)
            if subscription_code
            else None
        )
        if subscription:
            subscription.status = "cancelled"
        logger.warning(f"🚫 Subscription for {profile.email} cancelled after {failures} failures")
    else:
        logger.warning(f"⚠️ Billing failure {failures} for {profile.email}")
    db.commit()


def handle_subscription_disable(db: Session, data: dict):
    subscription = PaymentsRepository().get_subscription_by_code(
        db, data.get("subscription_code", "")
    )
    if subscription:
        subscription.status = "cancelled"
        profile = PaymentsRepository().get_profile(db, subscription.user_id)
    else:
        profile = _profile_for_event(db, data)

    if profile:
        profile.has_active_subscription = False
        profile.cancelled_at = utcnow()
    db.commit()


@webhooks_router.post("/paystack/webhook", response_class=PlainTextResponse)
async def paystack_webhook(request: Request, db: Session = Depends(get_db)):
    raw_body = await verify_paystack_webhook(request, PAYSTACK_SECRET_KEY)

    try:
        payload = json.loads(raw_body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from e

    event = payload.get("event")
    data = payload.get("data") or {}
    logger.info(f"💳 Paystack event received: {event}")

    try:
        if event in ("charge.success", "invoice.payment_success"):
            await handle_payment_success(db, data)
        elif event == "subscription.create":
            handle_subscription_create(db, data)
        elif event == "invoice.payment_failed":
            handle_payment_failed(db, data)
        elif event == "subscription.disable":
            handle_subscription_disable(db, data)
        else:
            logger.info(f"ℹ️ Unhandled Paystack event: {event}")
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error handling Paystack event {event}: {e}")

    return "OK"
