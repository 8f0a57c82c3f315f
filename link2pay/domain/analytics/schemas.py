"""Onboarding analytics schemas"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class StepEnter(BaseModel):
    step_name: str = Field(min_length=1, max_length=100)
    step_number: int = Field(ge=0)
    onboarding_type: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class StepComplete(BaseModel):
    metadata: Optional[dict[str, Any]] = None


class StepSkip(BaseModel):
    reason: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class AnalyticsQuery(BaseModel):
    type: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    onboarding_type: Optional[str] = None
