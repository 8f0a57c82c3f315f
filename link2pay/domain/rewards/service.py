"""Rewards service - points, invoicing streaks and badge unlocks"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Profile, utcnow
from ...models_engagement import UserRewards
from .badges import BADGES
from .repository import RewardsRepository

logger = logging.getLogger(__name__)

STREAK_DAY_POINTS = 5
WEEKLY_ACHIEVEMENT_EVERY = 3


class RewardsService:
    """Service layer for the merchant rewards programme"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = RewardsRepository()

    def _get_or_create(self, user_id: str) -> UserRewards:
        rewards = self.repo.get_rewards(self.db, user_id)
        if not rewards:
            rewards = UserRewards(
                user_id=user_id,
                points_total=0,
                points_weekly=0,
                current_streak=0,
                longest_streak=0,
                badges=[],
            )
            self.db.add(rewards)
            self.db.flush()
        return rewards

    def award_points(
        self,
        user_id: str,
        activity_type: str,
        points: int,
        metadata: Optional[dict] = None,
        check_badges: bool = True,
    ) -> None:
        """
        Add points to the merchant's totals and log the activity.

        Never raises: a rewards failure must not break the invoice or payment flow
        that triggered it.
        """
        try:
            rewards = self._get_or_create(user_id)
            rewards.points_total = (rewards.points_total or 0) + points
            rewards.points_weekly = (rewards.points_weekly or 0) + points
            self.repo.log_activity(self.db, user_id, activity_type, points, metadata)
            self.db.commit()
            logger.info(f"🏅 Awarded {points} points to {user_id} for {activity_type}")

            if check_badges:
                self.check_badge_unlocks(user_id)
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Error awarding points to {user_id}: {e}")

    def check_badge_unlocks(self, user_id: str) -> list[str]:
        """Evaluate every badge the merchant hasn't unlocked yet; returns the new badge ids"""
        try:
            now = utcnow()
            week_ago = now - timedelta(days=7)
            start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

            rewards = self._get_or_create(user_id)
            unlocked = list(rewards.badges or [])

            invoice_counts = {
                "all_time": self.repo.count_invoices(self.db, user_id),
                "weekly": self.repo.count_invoices(self.db, user_id, since=week_ago),
                "daily": self.repo.count_invoices(self.db, user_id, since=start_of_day),
            }
            weekly_revenue = self.repo.paid_revenue(self.db, user_id, since=week_ago)
            repeat_customers = self.repo.repeat_customer_count(self.db, user_id)
            streak = rewards.current_streak or 0

            new_badges = []
            for badge_id, badge in BADGES.items():
                if badge_id in unlocked:
                    continue
                criteria = badge["criteria"]
                kind = criteria["type"]
                if kind == "invoice_count":
                    value = invoice_counts[criteria.get("period", "all_time")]
                elif kind == "revenue":
                    value = weekly_revenue
                elif kind == "streak":
                    value = streak
                elif kind == "customer_count":
                    value = repeat_customers
                else:
                    continue
                if value >= criteria["value"]:
                    new_badges.append(badge_id)

            if not new_badges:
                return []

            # Reassign so the JSON column is flagged dirty
            rewards.badges = unlocked + new_badges
            self.db.commit()
            logger.info(f"🏆 {user_id} unlocked badges: {', '.join(new_badges)}")

            badge_points = sum(BADGES[b]["points"] for b in new_badges)
            if badge_points > 0:
                self.award_points(
                    user_id, "badge_unlock", badge_points, {"badges": new_badges}, check_badges=False
                )
            return new_badges
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Error checking badges for {user_id}: {e}")
            return []

    def update_streak_on_invoice(self, user_id: str) -> int:
        """Advance the daily invoicing streak; one missed day is forgiven after a consecutive day"""
        try:
            today = utcnow().date()
            rewards = self.repo.get_rewards(self.db, user_id)

            if not rewards:
                rewards = UserRewards(
                    user_id=user_id,
                    current_streak=1,
                    longest_streak=1,
                    last_activity_date=today,
                    points_total=STREAK_DAY_POINTS,
                    points_weekly=STREAK_DAY_POINTS,
                    badges=[],
                )
                self.db.add(rewards)
                self.db.commit()
                return 1

            if not rewards.last_activity_date:
                rewards.current_streak = 1
                rewards.longest_streak = max(rewards.longest_streak or 0, 1)
                rewards.last_activity_date = today
                self.db.commit()
                return 1

            gap = (today - rewards.last_activity_date).days
            current = rewards.current_streak or 0

            if gap == 0:
                return current
            if gap == 1:
                new_streak = current + 1
            elif gap == 2 and rewards.streak_safe_date == rewards.last_activity_date:
                new_streak = current + 1
            else:
                new_streak = 1

            rewards.current_streak = new_streak
            rewards.longest_streak = max(new_streak, rewards.longest_streak or 0)
            if gap == 1:
                rewards.streak_safe_date = today
            rewards.last_activity_date = today

            self.repo.log_activity(
                self.db, user_id, "streak_day", STREAK_DAY_POINTS, {"streak": new_streak}
            )
            self.db.commit()
            logger.info(f"🔥 Streak for {user_id} is now {new_streak}")
            return new_streak
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Error updating streak for {user_id}: {e}")
            return 0

    def check_weekly_invoice_achievement(self, user_id: str) -> Optional[str]:
        count = self.repo.count_invoices(self.db, user_id, since=week_start())
        if count > 0 and count % WEEKLY_ACHIEVEMENT_EVERY == 0:
            return f"You're on a roll, {count} invoices this week 🎉"
        return None

    def get_my_rewards(self, user: Profile) -> dict:
        rewards = self._get_or_create(user.id)
        self.db.commit()
        unlocked = rewards.badges or []
        return {
            "points_total": rewards.points_total or 0,
            "points_weekly": rewards.points_weekly or 0,
            "current_streak": rewards.current_streak or 0,
            "longest_streak": rewards.longest_streak or 0,
            "last_activity_date": rewards.last_activity_date,
            "badges": [
                {"id": badge_id, **{k: v for k, v in BADGES[badge_id].items() if k != "criteria"}}
                for badge_id in unlocked
                if badge_id in BADGES
            ],
            "recent_activities": [
                {
                    "id": a.id,
                    "activity_type": a.activity_type,
                    "points_earned": a.points_earned,
                    "metadata": a.activity_metadata or {},
                    "created_at": a.created_at,
                }
                for a in self.repo.recent_activities(self.db, user.id)
            ],
        }

    def get_leaderboard(self, period: str = "weekly", limit: int = 10) -> list[dict]:
        rows = self.repo.leaderboard(self.db, period, limit)
        return [
            {
                "rank": index,
                "business_name": profile.business_name or profile.full_name or "Link2Pay Merchant",
                "points": (rewards.points_weekly if period == "weekly" else rewards.points_total)
                or 0,
                "current_streak": rewards.current_streak or 0,
                "badge_count": len(rewards.badges or []),
            }
            for index, (rewards, profile) in enumerate(rows, start=1)
        ]

    def reset_weekly_points(self) -> int:
        count = self.repo.reset_weekly_points(self.db)
        logger.info(f"🔄 Weekly points reset for {count} merchants")
        return count


def badge_catalogue() -> list[dict]:
    return [{"id": badge_id, **badge} for badge_id, badge in BADGES.items()]


def week_start(now: Optional[datetime] = None) -> datetime:
    now = now or utcnow()
    return (now - timedelta(days=now.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
