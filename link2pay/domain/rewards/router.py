"""Rewards router - points, badges and leaderboard endpoints"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_admin_user, get_current_user
from ...database import get_db
from ...models import Profile
from .service import RewardsService, badge_catalogue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rewards", tags=["Rewards"])


def get_rewards_service(db: Session = Depends(get_db)) -> RewardsService:
    """Dependency injection for RewardsService"""
    return RewardsService(db)


@router.get("/me")
async def get_my_rewards(
    current_user: Profile = Depends(get_current_user),
    service: RewardsService = Depends(get_rewards_service),
):
    """Points, streaks, unlocked badges and recent activity for the current merchant"""
    return service.get_my_rewards(current_user)


@router.get("/badges")
async def list_badges():
    return {"badges": badge_catalogue()}


@router.get("/leaderboard")
async def get_leaderboard(
    period: str = Query("weekly", pattern="^(weekly|all_time)$"),
    limit: int = Query(10, ge=1, le=100),
    current_user: Profile = Depends(get_current_user),
    service: RewardsService = Depends(get_rewards_service),
):
    return {"period": period, "leaderboard": service.get_leaderboard(period, limit)}


@router.post("/check-badges")
async def check_badges(
    current_user: Profile = Depends(get_current_user),
    service: RewardsService = Depends(get_rewards_service),
):
    new_badges = service.check_badge_unlocks(current_user.id)
    return {"new_badges": new_badges}


@router.post("/reset-weekly")
async def reset_weekly_points(
    admin: Profile = Depends(get_admin_user),
    service: RewardsService = Depends(get_rewards_service),
):
    """Zero every merchant's weekly points (normally run by the Monday cron job)"""
    logger.info(f"🔄 Manual weekly points reset requested by {admin.email}")
    return {"reset": service.reset_weekly_points()}
