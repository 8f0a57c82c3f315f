"""Payments domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, EmailStr, field_validator


class BillingDetails(BaseModel):
    name: Optional[str] = None
    email: EmailStr


class PayFastSubscribeRequest(BaseModel):
    """Start platform billing through PayFast"""

    promo_code: Optional[str] = None
    billing_details: BillingDetails
    is_trial_setup: bool = False

    @field_validator("promo_code")
    @classmethod
    def normalize_promo(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip().upper()


class ValidatePromoRequest(BaseModel):
    code: str


class PaystackSubscriptionRequest(BaseModel):
    email: EmailStr
    full_name: str
    promo_code: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("full_name is required")
        return v.strip()


class PaystackPostTrialRequest(BaseModel):
    email: EmailStr
    full_name: Optional[str] = None


class SubscriptionStatusResponse(BaseModel):
    has_active_subscription: bool
    is_trial_active: bool
    trial_days_left: int
    requires_payment: bool
    subscription_price: Optional[float] = None
    discount_applied: bool = False
    subscription_status: Optional[str] = None
