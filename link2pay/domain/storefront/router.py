"""Storefront router - merchant store setup and the public store page"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from ...rate_limiter import create_rate_limiter
from .schemas import (
    PayFastCredentialsUpdate,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    ProfileUpdate,
    SectionCreate,
    SectionResponse,
    SectionUpdate,
    UniqueHandleRequest,
)
from .service import StorefrontService, generate_unique_handle, profile_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/storefront", tags=["Storefront"])

# 30 handle lookups per minute per IP
rate_limit_handle = create_rate_limiter(limit=30, window_seconds=60, key_prefix="unique_handle")


def get_storefront_service(db: Session = Depends(get_db)) -> StorefrontService:
    """Dependency injection for StorefrontService"""
    return StorefrontService(db)


@router.post("/unique-handle")
async def unique_handle(
    data: UniqueHandleRequest,
    db: Session = Depends(get_db),
    _rate_limit: None = Depends(rate_limit_handle),
):
    return {"unique_handle": generate_unique_handle(db, data.business_name)}


# ============================================================================
# PROFILE
# ============================================================================


@router.get("/profile")
async def get_profile(current_user: Profile = Depends(get_current_user)):
    return profile_to_dict(current_user)


@router.patch("/profile")
async def update_profile(
    data: ProfileUpdate,
    current_user: Profile = Depends(get_current_user),
    service: StorefrontService = Depends(get_storefront_service),
):
    return profile_to_dict(service.update_profile(current_user, data))


@router.put("/payfast-credentials")
async def update_payfast_credentials(
    data: PayFastCredentialsUpdate,
    current_user: Profile = Depends(get_current_user),
    service: StorefrontService = Depends(get_storefront_service),
):
    """Save the merchant's own PayFast account; the passphrase is stored encrypted"""
    return service.update_payfast_credentials(current_user, data)


@router.get("/payfast-test-link")
async def payfast_test_link(
    current_user: Profile = Depends(get_current_user),
    service: StorefrontService = Depends(get_storefront_service),
):
    return service.payfast_test_link(current_user)


# ============================================================================
# PRODUCTS
# ============================================================================


@router.get("/products", response_model=list[ProductResponse])
async def list_products(
    current_user: Profile = Depends(get_current_user),
    service: StorefrontService = Depends(get_storefront_service),
):
    return service.get_products(current_user)


@router.post("/products", response_model=ProductResponse, status_code=201)
async def create_product(
    data: ProductCreate,
    current_user: Profile = Depends(get_current_user),
    service: StorefrontService = Depends(get_storefront_service),
):
    return service.create_product(current_user, data)


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    current_user: Profile = Depends(get_current_user),
    service: StorefrontService = Depends(get_storefront_service),
):
    return service.get_product(product_id, current_user)


@router.patch("/products/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    data: ProductUpdate,
    current_user: Profile = Depends(get_current_user),
    service: StorefrontService = Depends(get_storefront_service),
):
    return service.update_product(product_id, current_user, data)


@router.delete("/products/{product_id}")
async def delete_product(
    product_id: str,
    current_user: Profile = Depends(get_current_user),
    service: StorefrontService = Depends(get_storefront_service),
):
    return service.delete_product(product_id, current_user)


# ============================================================================
# SECTIONS
# ============================================================================


@router.get("/sections", response_model=list[SectionResponse])
async def list_sections(
    current_user: Profile = Depends(get_current_user),
    service: StorefrontService = Depends(get_storefront_service),
):
    return service.get_sections(current_user)


@router.post("/sections", response_model=SectionResponse, status_code=201)
async def create_section(
    data: SectionCreate,
    current_user: Profile = Depends(get_current_user),
    service: StorefrontService = Depends(get_storefront_service),
):
    return service.create_section(current_user, data)


@router.patch("/sections/{section_id}", response_model=SectionResponse)
async def update_section(
    section_id: str,
    data: SectionUpdate,
    current_user: Profile = Depends(get_current_user),
    service: StorefrontService = Depends(get_storefront_service),
):
    return service.update_section(section_id, current_user, data)


@router.delete("/sections/{section_id}")
async def delete_section(
    section_id: str,
    current_user: Profile = Depends(get_current_user),
    service: StorefrontService = Depends(get_storefront_service),
):
    return service.delete_section(section_id, current_user)


# ============================================================================
# PUBLIC
# ============================================================================


@router.get("/public/{handle}")
async def get_public_store(
    handle: str,
    service: StorefrontService = Depends(get_storefront_service),
):
    """Public store page data. No authentication required."""
    return service.get_public_store(handle)
