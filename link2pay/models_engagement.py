"""
Engagement Models: rewards, drip campaigns, retention tracking and onboarding analytics
"""

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text

from .database import Base
from .models import generate_uuid, utcnow


class UserRewards(Base):
    __tablename__ = "user_rewards"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), unique=True, nullable=False)
    points_total = Column(Integer, default=0)
    points_weekly = Column(Integer, default=0)
    current_streak = Column(Integer, default=0)
    longest_streak = Column(Integer, default=0)
    last_activity_date = Column(Date, nullable=True)
    # Day on which a one-day gap in the streak is forgiven
    streak_safe_date = Column(Date, nullable=True)
    badges = Column(JSON, default=list)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class RewardActivity(Base):
    __tablename__ = "reward_activities"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    activity_type = Column(String(50), nullable=False)
    points_earned = Column(Integer, default=0)
    # "metadata" is reserved on declarative classes
    activity_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class EmailCampaign(Base):
    __tablename__ = "email_campaigns"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    template_content = Column(Text, nullable=False)
    delay_days = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class EmailCampaignSubscriber(Base):
    __tablename__ = "email_campaign_subscribers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    campaign_id = Column(String(36), ForeignKey("email_campaigns.id"), nullable=False)
    status = Column(String(50), default="enrolled")  # enrolled, sent, failed
    scheduled_at = Column(DateTime, nullable=False)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class EmailCampaignLog(Base):
    __tablename__ = "email_campaign_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    subscriber_id = Column(String(36), ForeignKey("email_campaign_subscribers.id"), nullable=False)
    status = Column(String(50), nullable=False)  # sent, failed, skipped
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class WhatsAppCampaign(Base):
    __tablename__ = "whatsapp_campaigns"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    template_sid = Column(String(100), nullable=False)
    delay_days = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class WhatsAppCampaignSubscriber(Base):
    __tablename__ = "whatsapp_campaign_subscribers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    campaign_id = Column(String(36), ForeignKey("whatsapp_campaigns.id"), nullable=False)
    status = Column(String(50), default="enrolled")
    scheduled_at = Column(DateTime, nullable=False)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class WhatsAppCampaignLog(Base):
    __tablename__ = "whatsapp_campaign_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    subscriber_id = Column(
        String(36), ForeignKey("whatsapp_campaign_subscribers.id"), nullable=False
    )
    status = Column(String(50), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class UserActivity(Base):
    """Retention tag per merchant, refreshed by the daily monitoring job"""

    __tablename__ = "user_activity"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), unique=True, nullable=False)
    tag = Column(String(20), nullable=False)  # active, at_risk, dormant
    last_invoice_at = Column(DateTime, nullable=True)
    last_dashboard_visit = Column(DateTime, nullable=True)
    tag_updated_at = Column(DateTime, default=utcnow)


class UserNotification(Base):
    __tablename__ = "user_notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    message_type = Column(String(50), nullable=False)
    message_content = Column(Text, nullable=True)
    sent_at = Column(DateTime, default=utcnow, nullable=False)


class OnboardingProgress(Base):
    __tablename__ = "onboarding_progress"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    step_name = Column(String(100), nullable=False)
    step_number = Column(Integer, nullable=False)
    onboarding_type = Column(String(50), nullable=True)  # physical_products, bookings
    entered_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    skipped_at = Column(DateTime, nullable=True)
    time_spent_seconds = Column(Integer, nullable=True)
    is_completed = Column(Boolean, default=False)
    is_skipped = Column(Boolean, default=False)
    step_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
