"""Payments repository - Database operations for billing and gateway notifications"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import (
    PayFastSubscription,
    Profile,
    PromoCode,
    Subscription,
    SubscriptionTransaction,
    utcnow,
)
from ...models_invoice import Invoice


class PaymentsRepository:
    """Repository for payments database operations"""

    @staticmethod
    def get_profile(db: Session, user_id: str) -> Optional[Profile]:
        return db.query(Profile).filter(Profile.id == user_id).first()

    @staticmethod
    def get_profile_by_email(db: Session, email: str) -> Optional[Profile]:
        return db.query(Profile).filter(Profile.email == email).first()

    @staticmethod
    def get_profile_by_merchant_id(db: Session, merchant_id: str) -> Optional[Profile]:
        return db.query(Profile).filter(Profile.payfast_merchant_id == merchant_id).first()

    @staticmethod
    def get_active_promo(db: Session, code: str) -> Optional[PromoCode]:
        """Active, unexpired promo code (codes are stored upper-case)"""
        promo = (
            db.query(PromoCode)
            .filter(PromoCode.code == code.strip().upper(), PromoCode.is_active.is_(True))
            .first()
        )
        if promo and promo.expires_at and promo.expires_at < utcnow():
            return None
        if promo and promo.max_uses is not None and (promo.current_uses or 0) >= promo.max_uses:
            return None
        return promo

    @staticmethod
    def record_transaction(
        db: Session,
        user_id: str,
        transaction_type: str,
        amount: float,
        status: str,
        reference: Optional[str] = None,
        payfast_payment_id: Optional[str] = None,
    ) -> SubscriptionTransaction:
        transaction = SubscriptionTransaction(
            user_id=user_id,
            transaction_type=transaction_type,
            amount=amount,
            status=status,
            reference=reference,
            payfast_payment_id=payfast_payment_id,
        )
        db.add(transaction)
        db.commit()
        return transaction

    @staticmethod
    def latest_payfast_subscription(db: Session, user_id: str) -> Optional[PayFastSubscription]:
        return (
            db.query(PayFastSubscription)
            .filter(PayFastSubscription.user_id == user_id)
            .order_by(PayFastSubscription.created_at.desc())
            .first()
        )

    @staticmethod
    def log_payfast_subscription(db: Session, profile: Profile, data: dict) -> PayFastSubscription:
        amount = data.get("amount_gross")
        record = PayFastSubscription(
            user_id=profile.id,
            email=data.get("email_address"),
            invoice_id=data.get("m_payment_id"),
            pf_subscription_id=data.get("pf_payment_id"),
            status=data.get("payment_status"),
            amount=float(amount) if amount else None,
            raw_data=data,
        )
        db.add(record)
        db.commit()
        return record

    @staticmethod
    def get_subscriptions(db: Session, user_id: str) -> list[Subscription]:
        return db.query(Subscription).filter(Subscription.user_id == user_id).all()

    @staticmethod
    def get_subscription_by_code(db: Session, code: str) -> Optional[Subscription]:
        return (
            db.query(Subscription).filter(Subscription.paystack_subscription_code == code).first()
        )

    @staticmethod
    def get_invoice_by_number(db: Session, invoice_number: str) -> Optional[Invoice]:
        return db.query(Invoice).filter(Invoice.invoice_number == invoice_number).first()
