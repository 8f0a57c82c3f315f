"""Onboarding analytics - step tracking plus funnel and completion reports"""

import logging
import math
from collections import defaultdict
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Profile, utcnow
from ...models_engagement import OnboardingProgress
from .schemas import AnalyticsQuery, StepComplete, StepEnter, StepSkip

logger = logging.getLogger(__name__)

# Steps after this one have no successor to drop off to
LAST_FUNNEL_STEP = 4
ONBOARDING_CHOICES = ("physical_products", "bookings")


def round_half_up(value: float) -> int:
    """Halves round up (2.5 -> 3), unlike round() which rounds them to even"""
    return int(math.floor(value + 0.5))


def funnel_report(rows: list[OnboardingProgress]) -> list[dict]:
    steps: dict[tuple[str, int], dict] = {}
    journeys: dict[str, list[OnboardingProgress]] = defaultdict(list)

    for row in rows:
        step = steps.setdefault(
            (row.step_name, row.step_number),
            {"entered": set(), "completed": set(), "skipped": set(), "times": []},
        )
        step["entered"].add(row.user_id)
        if row.is_completed:
            step["completed"].add(row.user_id)
        if row.is_skipped:
            step["skipped"].add(row.user_id)
        if row.time_spent_seconds:
            step["times"].append(row.time_spent_seconds)
        journeys[row.user_id].append(row)

    report = []
    for (step_name, step_number), step in steps.items():
        entries = len(step["entered"])
        completions = len(step["completed"])
        skips = len(step["skipped"])

        drop_offs = 0
        if step_number < LAST_FUNNEL_STEP:
            progressed = 0
            for journey in journeys.values():
                has_current = any(
                    r.step_number == step_number and r.step_name == step_name for r in journey
                )
                has_next = any(r.step_number == step_number + 1 for r in journey)
                if has_current and has_next:
                    progressed += 1
            drop_offs = max(0, entries - progressed)

        times = step["times"]
        report.append(
            {
                "step_name": step_name,
                "step_number": step_number,
                "entries": entries,
                "completions": completions,
                "skips": skips,
                "drop_offs": drop_offs,
                "completion_rate": (
                    round_half_up((completions + skips) / entries * 100) if entries else 0
                ),
                "avg_time_seconds": round_half_up(sum(times) / len(times)) if times else 0,
            }
        )
    return sorted(report, key=lambda s: s["step_number"])


def insights_report(rows: list[OnboardingProgress]) -> dict:
    users: dict[str, dict] = {}
    choices = {choice: 0 for choice in ONBOARDING_CHOICES}

    for row in rows:
        user = users.setdefault(row.user_id, {"total_time": 0, "completed": False})
        if row.time_spent_seconds:
            user["total_time"] += row.time_spent_seconds
        if row.step_name == "success" and row.is_completed:
            user["completed"] = True
        if row.onboarding_type in choices:
            choices[row.onboarding_type] += 1

    completed = [u for u in users.values() if u["completed"]]
    completion_times = [u["total_time"] for u in completed if u["total_time"] > 0]
    average_seconds = sum(completion_times) / len(completion_times) if completion_times else 0

    return {
        "total_users_started": len(users),
        "total_users_completed": len(completed),
        "overall_completion_rate": round_half_up(len(completed) / len(users) * 100) if users else 0,
        "average_completion_time_minutes": round_half_up(average_seconds / 60),
        "choice_breakdown": choices,
    }


def _progress_dict(row: OnboardingProgress) -> dict:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "step_name": row.step_name,
        "step_number": row.step_number,
        "onboarding_type": row.onboarding_type,
        "entered_at": row.entered_at,
        "completed_at": row.completed_at,
        "skipped_at": row.skipped_at,
        "time_spent_seconds": row.time_spent_seconds,
        "is_completed": row.is_completed,
        "is_skipped": row.is_skipped,
        "metadata": row.step_metadata or {},
        "created_at": row.created_at,
    }


class AnalyticsService:
    """Service layer for onboarding tracking and reporting"""

    def __init__(self, db: Session):
        self.db = db

    def enter_step(self, user: Profile, data: StepEnter) -> OnboardingProgress:
        row = OnboardingProgress(
            user_id=user.id,
            step_name=data.step_name,
            step_number=data.step_number,
            onboarding_type=data.onboarding_type,
            entered_at=utcnow(),
            step_metadata=data.metadata or {},
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        logger.info(f"📊 {user.id} entered onboarding step {data.step_number} ({data.step_name})")
        return row

    def _get_step(self, step_id: str, user: Profile) -> OnboardingProgress:
        row = (
            self.db.query(OnboardingProgress)
            .filter(OnboardingProgress.id == step_id, OnboardingProgress.user_id == user.id)
            .first()
        )
        if not row:
            raise HTTPException(status_code=404, detail="Onboarding step not found")
        return row

    def _finish(self, row: OnboardingProgress, metadata: Optional[dict]) -> datetime:
        """Stamp the time spent on the step; returns the finish time"""
        now = utcnow()
        row.time_spent_seconds = max(0, int((now - row.entered_at).total_seconds()))
        if metadata:
            row.step_metadata = {**(row.step_metadata or {}), **metadata}
        return now

    def complete_step(self, step_id: str, user: Profile, data: StepComplete) -> OnboardingProgress:
        row = self._get_step(step_id, user)
        row.completed_at = self._finish(row, data.metadata)
        row.is_completed = True
        self.db.commit()
        self.db.refresh(row)
        return row

    def skip_step(self, step_id: str, user: Profile, data: StepSkip) -> OnboardingProgress:
        row = self._get_step(step_id, user)
        metadata = dict(data.metadata or {})
        if data.reason:
            metadata["skip_reason"] = data.reason
        row.skipped_at = self._finish(row, metadata)
        row.is_skipped = True
        self.db.commit()
        self.db.refresh(row)
        return row

    def get_data(self, query: AnalyticsQuery):
        if query.type == "progress":
            q = self.db.query(OnboardingProgress)
            if query.start_date:
                q = q.filter(OnboardingProgress.created_at >= query.start_date)
            if query.end_date:
                q = q.filter(OnboardingProgress.created_at <= query.end_date)
            return [_progress_dict(r) for r in q.order_by(OnboardingProgress.created_at.desc()).all()]

        if query.type in ("funnel", "insights"):
            q = self.db.query(OnboardingProgress)
            if query.type == "funnel" and query.onboarding_type:
                q = q.filter(OnboardingProgress.onboarding_type == query.onboarding_type)
            if query.start_date:
                q = q.filter(OnboardingProgress.entered_at >= query.start_date)
            if query.end_date:
                q = q.filter(OnboardingProgress.entered_at <= query.end_date)
            rows = q.order_by(OnboardingProgress.user_id, OnboardingProgress.step_number).all()
            return funnel_report(rows) if query.type == "funnel" else insights_report(rows)

        raise HTTPException(status_code=400, detail="Unknown analytics type")
