"""Campaigns router - manual campaign runs and retention reporting"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_admin_user, get_current_user
from ...database import get_db
from ...models import Profile
from . import service
from .repository import CampaignRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/campaigns", tags=["Campaigns"])


@router.post("/drip/process")
async def run_drip_campaigns(
    admin: Profile = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    logger.info(f"🔄 Manual drip run requested by {admin.email}")
    return await service.process_drip_campaigns(db)


@router.post("/whatsapp/process")
async def run_whatsapp_campaigns(
    admin: Profile = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    logger.info(f"🔄 Manual WhatsApp campaign run requested by {admin.email}")
    return await service.process_whatsapp_campaigns(db)


@router.post("/retention/process")
async def run_retention_monitoring(
    admin: Profile = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    logger.info(f"🔄 Manual retention run requested by {admin.email}")
    return await service.process_retention_monitoring(db)


@router.get("/retention/activity")
async def get_retention_activity(
    admin: Profile = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    rows = CampaignRepository.activity_with_emails(db)
    return [
        {
            "user_id": activity.user_id,
            "email": email,
            "tag": activity.tag,
            "last_invoice_at": activity.last_invoice_at,
            "last_dashboard_visit": activity.last_dashboard_visit,
            "tag_updated_at": activity.tag_updated_at,
        }
        for activity, email in rows
    ]


@router.get("/retention/notifications")
async def get_retention_notifications(
    limit: int = Query(20, ge=1, le=200),
    admin: Profile = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    return [
        {
            "id": n.id,
            "user_id": n.user_id,
            "message_type": n.message_type,
            "message_content": n.message_content,
            "sent_at": n.sent_at,
        }
        for n in CampaignRepository.recent_notifications(db, limit)
    ]


@router.post("/dashboard-visit")
async def track_dashboard_visit(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Stamp the merchant's last dashboard visit, used by retention tagging"""
    service.record_dashboard_visit(db, current_user)
    return {"success": True}
