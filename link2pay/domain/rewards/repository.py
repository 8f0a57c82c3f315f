"""Rewards repository - Database operations for points, streaks and badges"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Profile
from ...models_engagement import RewardActivity, UserRewards
from ...models_invoice import Invoice


class RewardsRepository:
    """Repository for rewards database operations"""

    @staticmethod
    def get_rewards(db: Session, user_id: str) -> Optional[UserRewards]:
        return db.query(UserRewards).filter(UserRewards.user_id == user_id).first()

    @staticmethod
    def log_activity(
        db: Session, user_id: str, activity_type: str, points: int, metadata: Optional[dict] = None
    ) -> RewardActivity:
        activity = RewardActivity(
            user_id=user_id,
            activity_type=activity_type,
            points_earned=points,
            activity_metadata=metadata or {},
        )
        db.add(activity)
        return activity

    @staticmethod
    def recent_activities(db: Session, user_id: str, limit: int = 20) -> list[RewardActivity]:
        return (
            db.query(RewardActivity)
            .filter(RewardActivity.user_id == user_id)
            .order_by(RewardActivity.created_at.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def count_invoices(db: Session, user_id: str, since: Optional[datetime] = None) -> int:
        query = db.query(func.count(Invoice.id)).filter(Invoice.user_id == user_id)
        if since is not None:
            query = query.filter(Invoice.created_at >= since)
        return query.scalar() or 0

    @staticmethod
    def paid_revenue(db: Session, user_id: str, since: datetime) -> float:
        total = (
            db.query(func.coalesce(func.sum(Invoice.total_amount), 0))
            .filter(
                Invoice.user_id == user_id,
                Invoice.status == "paid",
                Invoice.created_at >= since,
            )
            .scalar()
        )
        return float(total or 0)

    @staticmethod
    def repeat_customer_count(db: Session, user_id: str) -> int:
        """Distinct client names with at least two invoices"""
        repeat = (
            db.query(Invoice.client_name)
            .filter(Invoice.user_id == user_id)
            .group_by(Invoice.client_name)
            .having(func.count(Invoice.id) >= 2)
            .all()
        )
        return len(repeat)

    @staticmethod
    def leaderboard(db: Session, period: str, limit: int) -> list[tuple[UserRewards, Profile]]:
        points_column = UserRewards.points_weekly if period == "weekly" else UserRewards.points_total
        return (
            db.query(UserRewards, Profile)
            .join(Profile, Profile.id == UserRewards.user_id)
            .order_by(points_column.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def reset_weekly_points(db: Session) -> int:
        updated = db.query(UserRewards).update({UserRewards.points_weekly: 0})
        db.commit()
        return updated
