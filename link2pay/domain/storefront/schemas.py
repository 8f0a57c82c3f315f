"""Storefront domain schemas - Pydantic models for validation"""

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_sa_phone

HANDLE_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{1,62}$")
HEX_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")


class UniqueHandleRequest(BaseModel):
    business_name: str = ""


class ProfileUpdate(BaseModel):
    """Editable merchant profile and store design fields; omitted fields are left unchanged"""

    business_name: Optional[str] = Field(None, max_length=255)
    full_name: Optional[str] = Field(None, max_length=255)
    store_handle: Optional[str] = None
    whatsapp_number: Optional[str] = None

    logo_url: Optional[str] = Field(None, max_length=500)
    store_bio: Optional[str] = Field(None, max_length=2000)
    store_location: Optional[str] = Field(None, max_length=255)
    store_address: Optional[str] = None
    store_visibility: Optional[bool] = None
    theme_preset: Optional[str] = Field(None, max_length=50)
    primary_color: Optional[str] = None
    accent_color: Optional[str] = None
    background_color: Optional[str] = None
    store_font: Optional[str] = Field(None, max_length=50)
    store_layout: Optional[str] = Field(None, max_length=50)
    hero_headline: Optional[str] = Field(None, max_length=255)
    hero_subheading: Optional[str] = Field(None, max_length=500)
    hero_image_url: Optional[str] = Field(None, max_length=500)
    hero_cta_text: Optional[str] = Field(None, max_length=100)
    hero_cta_link: Optional[str] = Field(None, max_length=500)
    header_banner_url: Optional[str] = Field(None, max_length=500)

    payment_method: Optional[str] = Field(None, max_length=50)
    payfast_link: Optional[str] = Field(None, max_length=500)
    snapscan_link: Optional[str] = Field(None, max_length=500)
    capitec_paylink: Optional[str] = Field(None, max_length=500)
    show_capitec: Optional[bool] = None
    eft_details: Optional[str] = None

    delivery_method: Optional[str] = Field(None, max_length=50)
    delivery_note: Optional[str] = None
    default_currency: Optional[str] = Field(None, min_length=3, max_length=3)

    booking_payments_enabled: Optional[bool] = None
    default_booking_deposit: Optional[float] = Field(None, ge=0)
    onboarding_completed: Optional[bool] = None

    @field_validator("store_handle")
    @classmethod
    def validate_handle(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().lower()
        if not HANDLE_PATTERN.match(v):
            raise ValueError(
                "Handle must be 2-63 characters of lowercase letters, numbers or hyphens"
            )
        return v

    @field_validator("whatsapp_number")
    @classmethod
    def validate_whatsapp(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return validate_sa_phone(v)

    @field_validator("primary_color", "accent_color", "background_color")
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not HEX_COLOR_PATTERN.match(v):
            raise ValueError("Colors must be hex values like #4C9F70")
        return v


class PayFastCredentialsUpdate(BaseModel):
    merchant_id: str
    merchant_key: str
    passphrase: Optional[str] = None
    mode: str = "live"


class ProductCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    price: float = Field(gt=0)
    category: Optional[str] = Field(None, max_length=100)
    image_url: Optional[str] = Field(None, max_length=500)
    is_active: bool = True
    inventory_enabled: bool = False
    stock_quantity: Optional[int] = Field(None, ge=0)
    delivery_method: Optional[str] = Field(None, max_length=50)
    product_id: Optional[str] = Field(None, max_length=50)


class ProductUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    category: Optional[str] = Field(None, max_length=100)
    image_url: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None
    inventory_enabled: Optional[bool] = None
    stock_quantity: Optional[int] = Field(None, ge=0)
    delivery_method: Optional[str] = Field(None, max_length=50)


class ProductResponse(BaseModel):
    id: str
    product_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    price: float
    category: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool
    inventory_enabled: bool
    stock_quantity: Optional[int] = None
    delivery_method: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SectionCreate(BaseModel):
    section_type: str = Field(min_length=1, max_length=50)
    section_title: Optional[str] = Field(None, max_length=255)
    section_content: Optional[str] = None
    section_order: int = 0
    is_enabled: bool = True
    section_settings: Optional[dict[str, Any]] = None


class SectionUpdate(BaseModel):
    section_title: Optional[str] = Field(None, max_length=255)
    section_content: Optional[str] = None
    section_order: Optional[int] = None
    is_enabled: Optional[bool] = None
    section_settings: Optional[dict[str, Any]] = None


class SectionResponse(BaseModel):
    id: str
    section_type: str
    section_title: Optional[str] = None
    section_content: Optional[str] = None
    section_order: int
    is_enabled: bool
    section_settings: Optional[dict[str, Any]] = None

    class Config:
        from_attributes = True
