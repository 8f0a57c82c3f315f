"""
Rewards: invoicing streaks, badge unlocks, weekly achievements and the leaderboard
"""

from datetime import timedelta

import pytest

from link2pay.domain.rewards.service import RewardsService, week_start
from link2pay.models import utcnow
from link2pay.models_engagement import RewardActivity, UserRewards
from link2pay.models_invoice import Invoice

from .conftest import make_profile


def add_invoices(db, user_id: str, count: int, status: str = "sent", total: float = 100.0):
    for i in range(count):
        db.add(
            Invoice(
                user_id=user_id,
                invoice_number=f"INV-{user_id[:8]}-{i}-{status}",
                client_name=f"Client {i}",
                total_amount=total,
                status=status,
                paid_at=utcnow() if status == "paid" else None,
            )
        )
    db.commit()


def set_rewards(db, user_id: str, **fields) -> UserRewards:
    rewards = UserRewards(user_id=user_id, points_total=0, points_weekly=0, badges=[], **fields)
    db.add(rewards)
    db.commit()
    return rewards


@pytest.fixture
def service(db):
    return RewardsService(db)


class TestStreaks:
    def test_first_invoice_starts_streak(self, service, db, merchant):
        assert service.update_streak_on_invoice(merchant.id) == 1

        rewards = db.query(UserRewards).one()
        assert rewards.longest_streak == 1
        assert rewards.last_activity_date == utcnow().date()

    def test_consecutive_day_extends_streak(self, service, db, merchant):
        today = utcnow().date()
        rewards = set_rewards(
            db, merchant.id, current_streak=3, longest_streak=3, last_activity_date=today - timedelta(days=1)
        )

        assert service.update_streak_on_invoice(merchant.id) == 4
        db.refresh(rewards)
        assert rewards.longest_streak == 4
        assert rewards.streak_safe_date == today

        logged = db.query(RewardActivity).filter(RewardActivity.activity_type == "streak_day").one()
        assert logged.points_earned == 5

    def test_same_day_keeps_streak(self, service, db, merchant):
        set_rewards(db, merchant.id, current_streak=2, longest_streak=2, last_activity_date=utcnow().date())
        assert service.update_streak_on_invoice(merchant.id) == 2

    def test_one_missed_day_forgiven_after_consecutive_day(self, service, db, merchant):
        two_days_ago = utcnow().date() - timedelta(days=2)
        set_rewards(
            db,
            merchant.id,
            current_streak=5,
            longest_streak=5,
            last_activity_date=two_days_ago,
            streak_safe_date=two_days_ago,
        )
        assert service.update_streak_on_invoice(merchant.id) == 6

    def test_missed_day_without_grace_resets(self, service, db, merchant):
        set_rewards(
            db,
            merchant.id,
            current_streak=5,
            longest_streak=9,
            last_activity_date=utcnow().date() - timedelta(days=2),
        )

        assert service.update_streak_on_invoice(merchant.id) == 1
        assert db.query(UserRewards).one().longest_streak == 9

    def test_long_gap_resets(self, service, db, merchant):
        set_rewards(
            db, merchant.id, current_streak=4, longest_streak=4, last_activity_date=utcnow().date() - timedelta(days=10)
        )
        assert service.update_streak_on_invoice(merchant.id) == 1


class TestBadges:
    def test_first_invoice_badge(self, service, db, merchant):
        add_invoices(db, merchant.id, 1)

        assert service.check_badge_unlocks(merchant.id) == ["first_invoice"]

        rewards = db.query(UserRewards).one()
        assert rewards.badges == ["first_invoice"]
        assert rewards.points_total == 50
        unlock = db.query(RewardActivity).filter(RewardActivity.activity_type == "badge_unlock").one()
        assert unlock.points_earned == 50

    def test_badges_unlock_once(self, service, db, merchant):
        add_invoices(db, merchant.id, 1)
        service.check_badge_unlocks(merchant.id)

        assert service.check_badge_unlocks(merchant.id) == []
        assert db.query(UserRewards).one().points_total == 50

    def test_weekly_revenue_badge(self, service, db, merchant):
        add_invoices(db, merchant.id, 2, status="paid", total=600.0)

        unlocked = service.check_badge_unlocks(merchant.id)

        assert "top_seller" in unlocked
        assert "first_invoice" in unlocked

    def test_streak_badge(self, service, db, merchant):
        set_rewards(db, merchant.id, current_streak=7, longest_streak=7)
        assert "on_fire" in service.check_badge_unlocks(merchant.id)

    def test_award_points_updates_totals(self, service, db, merchant):
        service.award_points(merchant.id, "invoice_created", 10, check_badges=False)
        service.award_points(merchant.id, "invoice_created", 10, check_badges=False)

        rewards = db.query(UserRewards).one()
        assert rewards.points_total == 20
        assert rewards.points_weekly == 20
        assert db.query(RewardActivity).count() == 2


class TestWeeklyAchievement:
    def test_every_third_invoice(self, service, db, merchant):
        add_invoices(db, merchant.id, 2)
        assert service.check_weekly_invoice_achievement(merchant.id) is None

        db.add(Invoice(user_id=merchant.id, invoice_number="INV-third", client_name="C", total_amount=1))
        db.commit()
        message = service.check_weekly_invoice_achievement(merchant.id)
        assert "3 invoices this week" in message

    def test_week_starts_on_monday(self):
        start = week_start(utcnow())
        assert start.weekday() == 0
        assert (start.hour, start.minute, start.second) == (0, 0, 0)


class TestRewardsApi:
    def test_my_rewards_starts_empty(self, client):
        body = client.get("/rewards/me").json()

        assert body["points_total"] == 0
        assert body["badges"] == []
        assert body["recent_activities"] == []

    def test_badge_catalogue_is_public(self, client):
        badges = client.get("/rewards/badges").json()["badges"]
        ids = {b["id"] for b in badges}
        assert {"first_invoice", "on_fire", "unstoppable", "relationship_builder"} <= ids

    def test_leaderboard_order(self, client, db, merchant):
        rival = make_profile(db, email="rival@example.com", business_name="Rival Co")
        set_rewards(db, merchant.id, current_streak=0)
        set_rewards(db, rival.id, current_streak=0)
        db.query(UserRewards).filter(UserRewards.user_id == rival.id).update({"points_weekly": 80})
        db.query(UserRewards).filter(UserRewards.user_id == merchant.id).update({"points_weekly": 20})
        db.commit()

        board = client.get("/rewards/leaderboard", params={"period": "weekly"}).json()["leaderboard"]

        assert [entry["business_name"] for entry in board] == ["Rival Co", "Thandi's Bakes"]
        assert board[0]["rank"] == 1
        assert board[0]["points"] == 80

    def test_leaderboard_rejects_unknown_period(self, client):
        response = client.get("/rewards/leaderboard", params={"period": "monthly"})
        assert response.status_code == 422

    def test_weekly_reset_is_admin_only(self, client, db, merchant):
        set_rewards(db, merchant.id)
        response = client.post("/rewards/reset-weekly")
        assert response.status_code == 403

    def test_weekly_reset(self, admin_client, db, merchant):
        rewards = set_rewards(db, merchant.id)
        rewards.points_weekly = 45
        rewards.points_total = 300
        db.commit()

        response = admin_client.post("/rewards/reset-weekly")

        assert response.status_code == 200
        db.refresh(rewards)
        assert rewards.points_weekly == 0
        assert rewards.points_total == 300
