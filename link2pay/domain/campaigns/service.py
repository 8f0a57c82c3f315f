"""
Campaign service - email and WhatsApp drip campaigns plus daily retention monitoring.

The process_* functions are run by the arq worker on a schedule and can be
triggered manually from the admin endpoints.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import WHATSAPP_CAMPAIGN_BATCH_SIZE, WHATSAPP_CAMPAIGN_SEND_DELAY
from ...email_service import response_id, send_campaign_email, send_retention_email
from ...models import Profile, utcnow
from ...models_engagement import EmailCampaignSubscriber, WhatsAppCampaignSubscriber
from ...services.whatsapp_service import WhatsAppSendError, send_template_message
from .repository import CampaignRepository

logger = logging.getLogger(__name__)

RETENTION_WINDOW_DAYS = 7


def personalize_template(template: str, profile: Profile) -> str:
    display_name = profile.full_name or profile.business_name or "there"
    business_name = profile.business_name or profile.full_name or "your business"
    return template.replace("{{name}}", display_name).replace("{{business_name}}", business_name)


# ============================================================================
# ENROLLMENT
# ============================================================================


def enroll_in_email_campaigns(db: Session, user_id: str) -> int:
    """Schedule every active email campaign for a new merchant; returns how many were added"""
    repo = CampaignRepository()
    now = utcnow()
    existing = repo.enrolled_email_campaign_ids(db, user_id)
    added = 0
    for campaign in repo.active_email_campaigns(db):
        if campaign.id in existing:
            continue
        db.add(
            EmailCampaignSubscriber(
                user_id=user_id,
                campaign_id=campaign.id,
                status="enrolled",
                scheduled_at=now + timedelta(days=campaign.delay_days or 0),
            )
        )
        added += 1
    db.commit()
    if added:
        logger.info(f"📧 Enrolled {user_id} in {added} email campaigns")
    return added


def enroll_in_whatsapp_campaigns(db: Session, user_id: str) -> int:
    repo = CampaignRepository()
    now = utcnow()
    existing = repo.enrolled_whatsapp_campaign_ids(db, user_id)
    added = 0
    for campaign in repo.active_whatsapp_campaigns(db):
        if campaign.id in existing:
            continue
        db.add(
            WhatsAppCampaignSubscriber(
                user_id=user_id,
                campaign_id=campaign.id,
                status="enrolled",
                scheduled_at=now + timedelta(days=campaign.delay_days or 0),
            )
        )
        added += 1
    db.commit()
    if added:
        logger.info(f"📱 Enrolled {user_id} in {added} WhatsApp campaigns")
    return added


# ============================================================================
# EMAIL DRIP
# ============================================================================


async def process_drip_campaigns(db: Session) -> dict:
    """Send every email drip step that is due"""
    repo = CampaignRepository()
    due = repo.due_email_subscribers(db, utcnow())
    if not due:
        logger.info("📧 No drip emails due")
        return {"processed": 0, "message": "No emails due"}

    logger.info(f"📧 Processing {len(due)} due drip emails")
    processed = 0
    errors = 0

    for subscriber, campaign in due:
        profile = repo.get_profile(db, subscriber.user_id)
        if not profile:
            repo.log_email(db, subscriber.id, "skipped", {"error": "Profile not found"})
            db.commit()
            errors += 1
            continue
        if not profile.email:
            repo.log_email(db, subscriber.id, "failed", {"error": "No email address"})
            db.commit()
            errors += 1
            continue

        content = personalize_template(campaign.template_content, profile)
        try:
            response = await send_campaign_email(profile.email, campaign.subject, content)
        except Exception as e:
            logger.error(f"❌ Drip email '{campaign.name}' to {profile.email} failed: {e}")
            subscriber.status = "failed"
            repo.log_email(db, subscriber.id, "failed", {"error": str(e)})
            db.commit()
            errors += 1
            continue

        subscriber.status = "sent"
        subscriber.sent_at = utcnow()
        repo.log_email(db, subscriber.id, "sent", {"email_id": response_id(response)})
        db.commit()
        processed += 1

    logger.info(f"✅ Drip run finished: {processed} sent, {errors} errors")
    return {"processed": processed, "errors": errors, "total": len(due)}


# ============================================================================
# WHATSAPP DRIP
# ============================================================================


async def process_whatsapp_campaigns(db: Session, send_delay: Optional[float] = None) -> dict:
    """Send due WhatsApp campaign templates, spacing sends out to respect provider limits"""
    repo = CampaignRepository()
    delay = WHATSAPP_CAMPAIGN_SEND_DELAY if send_delay is None else send_delay
    due = repo.due_whatsapp_subscribers(db, utcnow(), WHATSAPP_CAMPAIGN_BATCH_SIZE)
    logger.info(f"📱 Processing {len(due)} due WhatsApp campaign messages")

    successful = 0
    failed = 0

    for index, (subscriber, campaign) in enumerate(due):
        profile = repo.get_profile(db, subscriber.user_id)
        if not profile or not profile.whatsapp_number or not profile.full_name:
            repo.log_whatsapp(
                db, subscriber.id, "failed", {"error": "Missing WhatsApp number or name"}
            )
            db.commit()
            failed += 1
            continue

        try:
            result = await send_template_message(
                db, profile.whatsapp_number, campaign.template_sid, [profile.full_name]
            )
        except WhatsAppSendError as e:
            result = {"success": False, "error": str(e)}

        if result["success"]:
            subscriber.status = "sent"
            subscriber.sent_at = utcnow()
            repo.log_whatsapp(
                db,
                subscriber.id,
                "sent",
                {"phone": profile.whatsapp_number, "template": campaign.template_sid},
            )
            successful += 1
        else:
            logger.error(f"❌ WhatsApp campaign '{campaign.name}' to {profile.id} failed")
            repo.log_whatsapp(db, subscriber.id, "failed", {"error": result.get("error")})
            failed += 1
        db.commit()

        if delay and index < len(due) - 1:
            await asyncio.sleep(delay)

    logger.info(f"✅ WhatsApp campaign run finished: {successful} sent, {failed} failed")
    return {"success": True, "processed": len(due), "successful": successful, "failed": failed}


# ============================================================================
# RETENTION
# ============================================================================


def classify_activity(last_invoice_at, last_dashboard_visit, now) -> str:
    cutoff = now - timedelta(days=RETENTION_WINDOW_DAYS)
    if last_invoice_at and last_invoice_at >= cutoff:
        return "active"
    if last_dashboard_visit and last_dashboard_visit >= cutoff:
        return "at_risk"
    return "dormant"


async def process_retention_monitoring(db: Session) -> dict:
    """Tag every onboarded merchant as active, at_risk or dormant and send the matching email"""
    repo = CampaignRepository()
    now = utcnow()
    stats = {"processed": 0, "errors": 0, "active": 0, "at_risk": 0, "dormant": 0}

    profiles = repo.onboarded_profiles(db)
    logger.info(f"🔄 Retention monitoring for {len(profiles)} merchants")

    for profile in profiles:
        try:
            last_invoice_at = repo.last_invoice_at(db, profile.id)
            tag = classify_activity(last_invoice_at, profile.last_dashboard_visit, now)
            stats[tag] += 1

            repo.upsert_activity(
                db, profile.id, tag, last_invoice_at, profile.last_dashboard_visit, now
            )
            db.commit()

            if profile.email:
                _, html_content = await send_retention_email(profile.email, tag)
                repo.add_notification(db, profile.id, tag, html_content, now)
                db.commit()
                logger.info(f"📧 Sent {tag} email to {profile.email}")

            stats["processed"] += 1
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Retention processing failed for {profile.id}: {e}")
            stats["errors"] += 1

    logger.info(f"✅ Retention monitoring finished: {stats}")
    return {"success": True, "stats": stats}


def record_dashboard_visit(db: Session, user: Profile) -> None:
    user.last_dashboard_visit = utcnow()
    db.commit()
