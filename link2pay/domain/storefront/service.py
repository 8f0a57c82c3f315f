"""Storefront service - merchant profile, PayFast credentials, products, sections and the public store"""

import logging
import secrets
import string
import time
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Profile
from ...models_invoice import Product, StoreSection
from ...security_utils import decrypt_credential, encrypt_credential, mask_secret
from ...utils.sanitization import sanitize_string, slugify_handle
from ..payments import payfast_service
from .repository import StorefrontRepository
from .schemas import (
    PayFastCredentialsUpdate,
    ProductCreate,
    ProductUpdate,
    ProfileUpdate,
    SectionCreate,
    SectionUpdate,
)

logger = logging.getLogger(__name__)

MAX_HANDLE_ATTEMPTS = 1000
PRODUCT_CODE_ALPHABET = string.ascii_uppercase + string.digits

DESIGN_FIELDS = (
    "logo_url",
    "store_bio",
    "store_location",
    "store_address",
    "theme_preset",
    "primary_color",
    "accent_color",
    "background_color",
    "store_font",
    "store_layout",
    "hero_headline",
    "hero_subheading",
    "hero_image_url",
    "hero_cta_text",
    "hero_cta_link",
    "header_banner_url",
)
PAYMENT_FIELDS = (
    "payment_method",
    "payfast_link",
    "snapscan_link",
    "capitec_paylink",
    "show_capitec",
    "eft_details",
)


def generate_unique_handle(db: Session, business_name: Optional[str]) -> str:
    """
    Store handle from a business name: lowercase alphanumerics, at most 20 chars.
    Taken handles get a numeric suffix (base1, base2, ...).
    """
    base = slugify_handle(business_name) or "store"
    repo = StorefrontRepository()

    candidate = base
    counter = 1
    while repo.handle_exists(db, candidate):
        candidate = f"{base}{counter}"
        counter += 1
        if counter > MAX_HANDLE_ATTEMPTS:
            logger.warning(f"⚠️ Too many handle collisions for '{base}', using timestamp fallback")
            candidate = f"{base}{int(time.time() * 1000)}"
            break
    return candidate


def generate_product_code() -> str:
    return "P-" + "".join(secrets.choice(PRODUCT_CODE_ALPHABET) for _ in range(6))


def profile_to_dict(profile: Profile) -> dict:
    data = {
        "id": profile.id,
        "email": profile.email,
        "full_name": profile.full_name,
        "business_name": profile.business_name,
        "store_handle": profile.store_handle,
        "whatsapp_number": profile.whatsapp_number,
        "store_visibility": profile.store_visibility,
        "delivery_method": profile.delivery_method,
        "delivery_note": profile.delivery_note,
        "default_currency": profile.default_currency,
        "booking_payments_enabled": profile.booking_payments_enabled,
        "default_booking_deposit": profile.default_booking_deposit,
        "onboarding_completed": profile.onboarding_completed,
        "payfast_merchant_id": profile.payfast_merchant_id,
        "payfast_merchant_key": mask_secret(profile.payfast_merchant_key),
        "payfast_mode": profile.payfast_mode,
        "payfast_configured": bool(profile.payfast_merchant_id and profile.payfast_merchant_key),
        "has_payfast_passphrase": bool(profile.payfast_passphrase),
    }
    for field in DESIGN_FIELDS + PAYMENT_FIELDS:
        data[field] = getattr(profile, field)
    return data


def _public_store_dict(profile: Profile) -> dict:
    data = {
        "business_name": profile.business_name,
        "store_handle": profile.store_handle,
        "whatsapp_number": profile.whatsapp_number,
        "delivery_method": profile.delivery_method,
        "delivery_note": profile.delivery_note,
        "default_currency": profile.default_currency,
        "user_id": profile.id,
    }
    for field in DESIGN_FIELDS + PAYMENT_FIELDS:
        data[field] = getattr(profile, field)
    return data


class StorefrontService:
    """Service layer for storefront business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = StorefrontRepository()

    # Profile

    def update_profile(self, user: Profile, data: ProfileUpdate) -> Profile:
        updates = data.model_dump(exclude_unset=True)

        handle = updates.get("store_handle")
        if handle and handle != user.store_handle:
            if self.repo.handle_exists(self.db, handle, exclude_user_id=user.id):
                raise HTTPException(status_code=409, detail="This store handle is already taken")

        for field in ("store_bio", "hero_headline", "hero_subheading", "business_name"):
            if updates.get(field):
                updates[field] = sanitize_string(updates[field])

        if not user.store_handle and "store_handle" not in updates:
            updates["store_handle"] = generate_unique_handle(
                self.db, updates.get("business_name") or user.business_name
            )

        try:
            profile = self.repo.update_profile(self.db, user, **updates)
        except IntegrityError as e:
            self.db.rollback()
            raise HTTPException(status_code=409, detail="This store handle is already taken") from e

        logger.info(f"✅ Profile updated for {user.id}: {', '.join(updates.keys())}")
        return profile

    def update_payfast_credentials(self, user: Profile, data: PayFastCredentialsUpdate) -> dict:
        credentials = payfast_service.PayFastCredentials(
            merchant_id=data.merchant_id.strip(),
            merchant_key=data.merchant_key.strip(),
            passphrase=(data.passphrase or "").strip() or None,
            mode=data.mode,
        )
        is_valid, errors = payfast_service.validate_credentials(credentials)
        if not is_valid:
            raise HTTPException(
                status_code=400,
                detail={"message": "Invalid PayFast credentials", "errors": errors},
            )

        user.payfast_merchant_id = credentials.merchant_id
        user.payfast_merchant_key = credentials.merchant_key
        user.payfast_passphrase = (
            encrypt_credential(credentials.passphrase) if credentials.passphrase else None
        )
        user.payfast_mode = credentials.mode
        self.db.commit()
        logger.info(f"🔐 PayFast credentials saved for {user.id} ({credentials.mode})")
        return {"success": True, "message": "PayFast credentials saved"}

    def payfast_test_link(self, user: Profile) -> dict:
        if not user.payfast_merchant_id or not user.payfast_merchant_key:
            raise HTTPException(status_code=400, detail="PayFast credentials not configured")
        credentials = payfast_service.PayFastCredentials(
            merchant_id=user.payfast_merchant_id,
            merchant_key=user.payfast_merchant_key,
            passphrase=decrypt_credential(user.payfast_passphrase),
            mode=user.payfast_mode or "live",
        )
        return {"payment_url": payfast_service.generate_test_link(credentials)}

    # Products

    def get_products(self, user: Profile) -> list[Product]:
        return self.repo.get_products(self.db, user.id)

    def get_product(self, product_id: str, user: Profile) -> Product:
        product = self.repo.get_product(self.db, product_id, user.id)
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        return product

    def _unique_product_code(self, user: Profile) -> str:
        code = generate_product_code()
        while self.repo.get_product_by_code(self.db, code, user.id):
            code = generate_product_code()
        return code

    def create_product(self, user: Profile, data: ProductCreate) -> Product:
        product_data = data.model_dump()
        product_data["title"] = sanitize_string(product_data["title"])
        product_data["description"] = sanitize_string(product_data["description"])
        code = (product_data.pop("product_id") or "").strip().upper()
        if code and self.repo.get_product_by_code(self.db, code, user.id):
            raise HTTPException(status_code=409, detail="Product code already in use")
        product_data["product_id"] = code or self._unique_product_code(user)

        product = self.repo.create_product(self.db, user.id, **product_data)
        logger.info(f"📦 Product {product.product_id} created for {user.id}")
        return product

    def update_product(self, product_id: str, user: Profile, data: ProductUpdate) -> Product:
        product = self.get_product(product_id, user)
        updates = data.model_dump(exclude_unset=True)
        for field in ("title", "description"):
            if updates.get(field):
                updates[field] = sanitize_string(updates[field])
        return self.repo.update_product(self.db, product, **updates)

    def delete_product(self, product_id: str, user: Profile) -> dict:
        product = self.get_product(product_id, user)
        self.repo.delete(self.db, product)
        return {"message": "Product deleted"}

    # Sections

    def get_sections(self, user: Profile) -> list[StoreSection]:
        return self.repo.get_sections(self.db, user.id)

    def _get_section(self, section_id: str, user: Profile) -> StoreSection:
        section = self.repo.get_section(self.db, section_id, user.id)
        if not section:
            raise HTTPException(status_code=404, detail="Section not found")
        return section

    def create_section(self, user: Profile, data: SectionCreate) -> StoreSection:
        section_data = data.model_dump()
        section_data["section_title"] = sanitize_string(section_data["section_title"])
        return self.repo.create_section(self.db, user.id, **section_data)

    def update_section(self, section_id: str, user: Profile, data: SectionUpdate) -> StoreSection:
        section = self._get_section(section_id, user)
        updates = data.model_dump(exclude_unset=True)
        if updates.get("section_title"):
            updates["section_title"] = sanitize_string(updates["section_title"])
        return self.repo.update_section(self.db, section, **updates)

    def delete_section(self, section_id: str, user: Profile) -> dict:
        section = self._get_section(section_id, user)
        self.repo.delete(self.db, section)
        return {"message": "Section deleted"}

    # Public store

    def get_public_store(self, handle: str) -> dict:
        profile = self.repo.get_profile_by_handle(self.db, handle.lower())
        if not profile or profile.store_visibility is False:
            raise HTTPException(status_code=404, detail="Store not found")

        return {
            "store": _public_store_dict(profile),
            "products": [
                {
                    "id": p.id,
                    "product_id": p.product_id,
                    "title": p.title,
                    "description": p.description,
                    "price": p.price,
                    "category": p.category,
                    "image_url": p.image_url,
                    "inventory_enabled": p.inventory_enabled,
                    "stock_quantity": p.stock_quantity,
                    "delivery_method": p.delivery_method,
                }
                for p in self.repo.get_products(self.db, profile.id, active_only=True)
            ],
            "sections": [
                {
                    "id": s.id,
                    "section_type": s.section_type,
                    "section_title": s.section_title,
                    "section_content": s.section_content,
                    "section_order": s.section_order,
                    "section_settings": s.section_settings,
                }
                for s in self.repo.get_sections(self.db, profile.id, enabled_only=True)
            ],
        }
