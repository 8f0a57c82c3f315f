"""Analytics router - onboarding step tracking and admin reports"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_admin_user, get_current_user
from ...database import get_db
from ...models import Profile
from .schemas import AnalyticsQuery, StepComplete, StepEnter, StepSkip
from .service import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["Analytics"])


def get_analytics_service(db: Session = Depends(get_db)) -> AnalyticsService:
    """Dependency injection for AnalyticsService"""
    return AnalyticsService(db)


@router.post("/onboarding/step")
async def enter_onboarding_step(
    data: StepEnter,
    current_user: Profile = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    row = service.enter_step(current_user, data)
    return {"id": row.id}


@router.post("/onboarding/step/{step_id}/complete")
async def complete_onboarding_step(
    step_id: str,
    data: StepComplete,
    current_user: Profile = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    row = service.complete_step(step_id, current_user, data)
    return {"id": row.id, "time_spent_seconds": row.time_spent_seconds}


@router.post("/onboarding/step/{step_id}/skip")
async def skip_onboarding_step(
    step_id: str,
    data: StepSkip,
    current_user: Profile = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    row = service.skip_step(step_id, current_user, data)
    return {"id": row.id, "time_spent_seconds": row.time_spent_seconds}


@router.post("/data")
async def get_analytics_data(
    query: AnalyticsQuery,
    admin: Profile = Depends(get_admin_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Onboarding reports: progress rows, step funnel or overall insights"""
    return service.get_data(query)
