"""Payments router - FastAPI endpoints for platform subscription billing"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from .schemas import (
    PayFastSubscribeRequest,
    PaystackPostTrialRequest,
    PaystackSubscriptionRequest,
    SubscriptionStatusResponse,
    ValidatePromoRequest,
)
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_subscription_service(db: Session = Depends(get_db)) -> SubscriptionService:
    """Dependency injection for SubscriptionService"""
    return SubscriptionService(db)


@router.get("/subscription-status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    user: Profile = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return service.get_subscription_status(user)


@router.post("/validate-promo")
async def validate_promo(
    body: ValidatePromoRequest,
    user: Profile = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return service.validate_promo(body.code)


@router.post("/payfast/subscribe")
async def payfast_subscribe(
    body: PayFastSubscribeRequest,
    user: Profile = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Create the signed PayFast form for the monthly subscription or trial setup"""
    return service.create_payfast_subscription(body, user)


@router.post("/payfast/cancel-subscription")
async def payfast_cancel_subscription(
    user: Profile = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.cancel_payfast_subscription(user)


@router.post("/activate-subscription")
async def activate_subscription(
    user: Profile = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Manually activate the subscription (testing)"""
    return service.activate_subscription(user)


@router.post("/simulate-trial-end")
async def simulate_trial_end(
    user: Profile = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Expire the trial immediately (testing)"""
    return service.simulate_trial_end(user)


@router.post("/paystack/create-subscription")
async def paystack_create_subscription(
    body: PaystackSubscriptionRequest,
    user: Profile = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.create_paystack_subscription(body, user)


@router.post("/paystack/setup-post-trial")
async def paystack_setup_post_trial(
    body: PaystackPostTrialRequest,
    user: Profile = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.setup_paystack_post_trial(body, user)
