"""Campaigns repository - drip enrollment, send logs and retention tracking"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Profile
from ...models_engagement import (
    EmailCampaign,
    EmailCampaignLog,
    EmailCampaignSubscriber,
    UserActivity,
    UserNotification,
    WhatsAppCampaign,
    WhatsAppCampaignLog,
    WhatsAppCampaignSubscriber,
)
from ...models_invoice import Invoice


class CampaignRepository:
    """Repository for campaign and retention database operations"""

    # Email drip

    @staticmethod
    def active_email_campaigns(db: Session) -> list[EmailCampaign]:
        return db.query(EmailCampaign).filter(EmailCampaign.is_active.is_(True)).all()

    @staticmethod
    def enrolled_email_campaign_ids(db: Session, user_id: str) -> set[str]:
        rows = (
            db.query(EmailCampaignSubscriber.campaign_id)
            .filter(EmailCampaignSubscriber.user_id == user_id)
            .all()
        )
        return {row[0] for row in rows}

    @staticmethod
    def due_email_subscribers(
        db: Session, now: datetime
    ) -> list[tuple[EmailCampaignSubscriber, EmailCampaign]]:
        return (
            db.query(EmailCampaignSubscriber, EmailCampaign)
            .join(EmailCampaign, EmailCampaign.id == EmailCampaignSubscriber.campaign_id)
            .filter(
                EmailCampaignSubscriber.status == "enrolled",
                EmailCampaignSubscriber.scheduled_at <= now,
            )
            .order_by(EmailCampaignSubscriber.scheduled_at)
            .all()
        )

    @staticmethod
    def log_email(db: Session, subscriber_id: str, status: str, details: dict) -> None:
        db.add(EmailCampaignLog(subscriber_id=subscriber_id, status=status, details=details))

    # WhatsApp drip

    @staticmethod
    def active_whatsapp_campaigns(db: Session) -> list[WhatsAppCampaign]:
        return db.query(WhatsAppCampaign).filter(WhatsAppCampaign.is_active.is_(True)).all()

    @staticmethod
    def enrolled_whatsapp_campaign_ids(db: Session, user_id: str) -> set[str]:
        rows = (
            db.query(WhatsAppCampaignSubscriber.campaign_id)
            .filter(WhatsAppCampaignSubscriber.user_id == user_id)
            .all()
        )
        return {row[0] for row in rows}

    @staticmethod
    def due_whatsapp_subscribers(
        db: Session, now: datetime, limit: int
    ) -> list[tuple[WhatsAppCampaignSubscriber, WhatsAppCampaign]]:
        return (
            db.query(WhatsAppCampaignSubscriber, WhatsAppCampaign)
            .join(WhatsAppCampaign, WhatsAppCampaign.id == WhatsAppCampaignSubscriber.campaign_id)
            .filter(
                WhatsAppCampaignSubscriber.status == "enrolled",
                WhatsAppCampaignSubscriber.sent_at.is_(None),
                WhatsAppCampaignSubscriber.scheduled_at <= now,
            )
            .order_by(WhatsAppCampaignSubscriber.scheduled_at)
            .limit(limit)
            .all()
        )

    @staticmethod
    def log_whatsapp(db: Session, subscriber_id: str, status: str, details: dict) -> None:
        db.add(WhatsAppCampaignLog(subscriber_id=subscriber_id, status=status, details=details))

    # Retention

    @staticmethod
    def get_profile(db: Session, user_id: str) -> Optional[Profile]:
        return db.query(Profile).filter(Profile.id == user_id).first()

    @staticmethod
    def onboarded_profiles(db: Session) -> list[Profile]:
        return db.query(Profile).filter(Profile.onboarding_completed.is_(True)).all()

    @staticmethod
    def last_invoice_at(db: Session, user_id: str) -> Optional[datetime]:
        invoice = (
            db.query(Invoice.created_at)
            .filter(Invoice.user_id == user_id)
            .order_by(Invoice.created_at.desc())
            .first()
        )
        return invoice[0] if invoice else None

    @staticmethod
    def upsert_activity(
        db: Session,
        user_id: str,
        tag: str,
        last_invoice_at: Optional[datetime],
        last_dashboard_visit: Optional[datetime],
        now: datetime,
    ) -> UserActivity:
        activity = db.query(UserActivity).filter(UserActivity.user_id == user_id).first()
        if not activity:
            activity = UserActivity(user_id=user_id)
            db.add(activity)
        activity.tag = tag
        activity.last_invoice_at = last_invoice_at
        activity.last_dashboard_visit = last_dashboard_visit
        activity.tag_updated_at = now
        return activity

    @staticmethod
    def add_notification(db: Session, user_id: str, message_type: str, content: str, now: datetime):
        db.add(
            UserNotification(
                user_id=user_id, message_type=message_type, message_content=content, sent_at=now
            )
        )

    @staticmethod
    def activity_with_emails(db: Session) -> list[tuple[UserActivity, Optional[str]]]:
        return (
            db.query(UserActivity, Profile.email)
            .join(Profile, Profile.id == UserActivity.user_id)
            .order_by(UserActivity.tag_updated_at.desc())
            .all()
        )

    @staticmethod
    def recent_notifications(db: Session, limit: int) -> list[UserNotification]:
        return (
            db.query(UserNotification).order_by(UserNotification.sent_at.desc()).limit(limit).all()
        )
