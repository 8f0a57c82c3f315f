"""
Email Service using Resend
Drip campaign, retention and growth application emails
"""

import logging
from typing import Optional, Union

import resend

from .config import (
    EMAIL_FROM_ADDRESS,
    GROWTH_APPLICATION_RECIPIENT,
    GROWTH_EMAIL_FROM_ADDRESS,
    RESEND_API_KEY,
    SUPPORT_EMAIL_FROM_ADDRESS,
)
from .email_templates import (
    convert_campaign_text_to_html,
    get_base_template,
    growth_application_template,
    retention_email_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailSendError(Exception):
    """Raised when an email cannot be delivered to the provider"""

    pass


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    html_content: str,
    from_address: Optional[str] = None,
    text_content: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Returns:
        Resend response dict (contains the email "id")
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailSendError("Email service not configured")

    recipients = [to] if isinstance(to, str) else to
    email_data = {
        "from": from_address or EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": html_content,
    }
    if text_content:
        email_data["text"] = text_content

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailSendError(f"Failed to send email: {str(e)}") from e


def response_id(response) -> Optional[str]:
    """Email id from a Resend response (dict or object depending on SDK version)"""
    if isinstance(response, dict):
        return response.get("id")
    return getattr(response, "id", None)


async def send_campaign_email(to: str, subject: str, text_content: str) -> dict:
    """Send a personalized drip campaign email from the support address"""
    html_content = get_base_template(
        subject, f'<div style="font-size: 16px;">{convert_campaign_text_to_html(text_content)}</div>'
    )
    return await send_email(
        to=to,
        subject=subject,
        html_content=html_content,
        from_address=SUPPORT_EMAIL_FROM_ADDRESS,
        text_content=text_content,
    )


async def send_retention_email(to: str, tag: str) -> tuple[dict, str]:
    """Send the retention email for a tag. Returns (response, html sent)."""
    subject, html_content = retention_email_template(tag)
    response = await send_email(
        to=to, subject=subject, html_content=html_content, from_address=SUPPORT_EMAIL_FROM_ADDRESS
    )
    return response, html_content


async def send_growth_application_email(**application) -> dict:
    html_content = growth_application_template(**application)
    return await send_email(
        to=GROWTH_APPLICATION_RECIPIENT,
        subject="New Link2Pay Growth Application",
        html_content=html_content,
        from_address=GROWTH_EMAIL_FROM_ADDRESS,
    )
