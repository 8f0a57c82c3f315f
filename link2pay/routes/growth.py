"""
Growth Routes: public application form for the Link2Pay growth programme
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..email_service import EmailSendError, response_id, send_growth_application_email
from ..rate_limiter import create_rate_limiter
from ..utils.sanitization import sanitize_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/growth", tags=["Growth"])

# 5 applications per hour per IP
rate_limit_growth = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="growth_apply")


class GrowthApplication(BaseModel):
    business_name: str = Field(min_length=1, max_length=255)
    owner_name: str = Field(min_length=1, max_length=255)
    business_category: str = Field(min_length=1, max_length=100)
    business_offer: str = Field(min_length=1, max_length=2000)
    monthly_revenue: float = Field(ge=0)
    growth_goals: str = Field(min_length=1, max_length=2000)
    business_location: str = Field(min_length=1, max_length=255)


@router.post("/apply")
async def apply(data: GrowthApplication, _rate_limit: None = Depends(rate_limit_growth)):
    application = sanitize_dict(data.model_dump())
    logger.info(f"📥 Growth application from {data.business_name}")

    try:
        response = await send_growth_application_email(**application)
    except EmailSendError as e:
        logger.error(f"❌ Growth application email failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to submit application") from e

    return {
        "success": True,
        "message": "Application submitted successfully",
        "email_id": response_id(response),
    }
