import uuid
from datetime import datetime, timezone

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
)
from sqlalchemy.orm import relationship

from .database import Base


def generate_uuid():
    return str(uuid.uuid4())


def utcnow():
    """Naive UTC timestamp, the form every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Profile(Base):
    """Merchant account. The primary key is the auth subject (Supabase user id)."""

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), index=True, nullable=True)
    full_name = Column(String(255), nullable=True)
    business_name = Column(String(255), nullable=True)
    whatsapp_number = Column(String(32), nullable=True)
    store_handle = Column(String(64), unique=True, index=True, nullable=True)

    # Store design
    logo_url = Column(String(500), nullable=True)
    store_bio = Column(Text, nullable=True)
    store_location = Column(String(255), nullable=True)
    store_address = Column(Text, nullable=True)
    store_visibility = Column(Boolean, default=True)
    theme_preset = Column(String(50), nullable=True)
    primary_color = Column(String(7), nullable=True)
    accent_color = Column(String(7), nullable=True)
    background_color = Column(String(7), nullable=True)
    store_font = Column(String(50), nullable=True)
    store_layout = Column(String(50), nullable=True)
    hero_headline = Column(String(255), nullable=True)
    hero_subheading = Column(String(500), nullable=True)
    hero_image_url = Column(String(500), nullable=True)
    hero_cta_text = Column(String(100), nullable=True)
    hero_cta_link = Column(String(500), nullable=True)
    header_banner_url = Column(String(500), nullable=True)

    # Payment options shown on invoices and the storefront
    payment_method = Column(String(50), nullable=True)
    payfast_link = Column(String(500), nullable=True)
    snapscan_link = Column(String(500), nullable=True)
    capitec_paylink = Column(String(500), nullable=True)
    show_capitec = Column(Boolean, default=False)
    eft_details = Column(Text, nullable=True)

    # Merchant's own PayFast account (passphrase stored encrypted)
    payfast_merchant_id = Column(String(50), index=True, nullable=True)
    payfast_merchant_key = Column(String(100), nullable=True)
    payfast_passphrase = Column(Text, nullable=True)
    payfast_mode = Column(String(10), default="live")

    delivery_method = Column(String(50), nullable=True)
    delivery_note = Column(Text, nullable=True)
    default_currency = Column(String(3), default="ZAR")

    # Platform billing
    trial_ends_at = Column(DateTime, nullable=True)
    trial_used = Column(Boolean, default=False)
    trial_expired = Column(Boolean, default=False)
    has_active_subscription = Column(Boolean, default=False)
    subscription_status = Column(String(50), nullable=True)  # active, cancelled
    subscription_price = Column(Float, nullable=True)
    subscription_amount = Column(Float, nullable=True)
    discount_applied = Column(Boolean, default=False)
    billing_failures = Column(Integer, default=0)
    billing_start_date = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    paystack_customer_code = Column(String(100), nullable=True)
    payfast_billing_token = Column(String(100), nullable=True)
    pf_subscription_id = Column(String(100), nullable=True)

    # Bookings
    booking_payments_enabled = Column(Boolean, default=False)
    default_booking_deposit = Column(Float, nullable=True)

    onboarding_completed = Column(Boolean, default=False)
    last_dashboard_visit = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    subscriptions = relationship(
        "Subscription", back_populates="profile", cascade="all, delete-orphan"
    )


class PlatformSettings(Base):
    """Single-row table with the platform's messaging provider credentials"""

    __tablename__ = "platform_settings"

    id = Column(Integer, primary_key=True, index=True)
    zoko_api_key = Column(String(255), nullable=True)
    zoko_base_url = Column(String(255), nullable=True)
    zoko_business_phone = Column(String(32), nullable=True)
    gupshup_api_key = Column(String(255), nullable=True)
    gupshup_source_phone = Column(String(32), nullable=True)
    twilio_account_sid = Column(String(64), nullable=True)
    twilio_auth_token = Column(String(255), nullable=True)
    twilio_whatsapp_number = Column(String(32), nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class PromoCode(Base):
    __tablename__ = "promo_codes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    code = Column(String(50), unique=True, index=True, nullable=False)
    discount_amount = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True)
    max_uses = Column(Integer, nullable=True)
    current_uses = Column(Integer, default=0)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Subscription(Base):
    """Paystack subscription record"""

    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    paystack_subscription_code = Column(String(100), index=True, nullable=True)
    paystack_plan_code = Column(String(100), nullable=True)
    status = Column(String(50), default="active")  # active, cancelled
    start_date = Column(DateTime, nullable=True)
    trial_end_date = Column(DateTime, nullable=True)
    next_billing_date = Column(DateTime, nullable=True)
    promo_applied = Column(String(50), nullable=True)
    amount = Column(Float, nullable=True)
    currency = Column(String(3), default="ZAR")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    profile = relationship("Profile", back_populates="subscriptions")


class SubscriptionTransaction(Base):
    __tablename__ = "subscription_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    # subscription_payment, cancellation
    transaction_type = Column(String(50), nullable=False)
    amount = Column(Float, default=0)
    status = Column(String(50), default="pending")
    reference = Column(String(255), nullable=True)
    payfast_payment_id = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class PayFastSubscription(Base):
    """Raw log of PayFast subscription notifications"""

    __tablename__ = "payfast_subscriptions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    email = Column(String(255), nullable=True)
    invoice_id = Column(String(100), nullable=True)
    pf_subscription_id = Column(String(100), nullable=True)
    status = Column(String(50), nullable=True)
    amount = Column(Float, nullable=True)
    raw_data = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
