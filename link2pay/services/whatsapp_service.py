"""
WhatsApp Messaging Service
Sends template and free-text WhatsApp messages through Zoko, Gupshup or Twilio.
Provider credentials are read from the platform_settings row.
"""

import json
import logging
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ..config import FRONTEND_URL, WHATSAPP_PROVIDER
from ..models import PlatformSettings
from ..shared.validators import format_e164, normalize_phone_for_gupshup

logger = logging.getLogger(__name__)

ZOKO_MESSAGE_URL = "https://chat.zoko.io/v2/message"
GUPSHUP_TEMPLATE_URL = "https://api.gupshup.io/wa/api/v1/template/msg"
GUPSHUP_MESSAGE_URL = "https://api.gupshup.io/wa/api/v1/msg"
TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"

INVOICE_NOTIFICATION_TEMPLATE = "invoice_notification"
INVOICE_PAID_TEMPLATE = "invoice_paid"


class WhatsAppSendError(Exception):
    """Raised when a message cannot be handed to the provider"""

    pass


class WhatsAppNotConfiguredError(WhatsAppSendError):
    """Raised when the selected provider has no credentials in platform_settings"""

    pass


def get_platform_settings(db: Session) -> Optional[PlatformSettings]:
    return db.query(PlatformSettings).order_by(PlatformSettings.id).first()


def default_invoice_url(invoice_number: str) -> str:
    return f"{FRONTEND_URL}/invoice/{invoice_number}"


def invoice_fallback_text(client_name: str, amount: str, invoice_url: str) -> str:
    return (
        f"Hi {client_name}!\n\nYou have a new invoice for R{amount}.\n\n"
        f"View and pay your invoice here: {invoice_url}\n\nThank you! 🙏"
    )


def payment_fallback_text(client_name: str, invoice_id: str) -> str:
    return (
        f"Hello {client_name},\n\nPayment received! ✅\n\n"
        f"Your invoice #{invoice_id} has been marked as PAID. Thank you for your business with us."
    )


def _parse_body(response: httpx.Response) -> tuple[Optional[dict], str]:
    text = response.text
    try:
        return response.json(), text
    except ValueError:
        return None, text


def _error_text(data: Optional[dict], raw: str, status_code: int) -> str:
    if data and isinstance(data, dict):
        return str(data.get("message") or data.get("error") or f"HTTP {status_code}")
    return raw[:200] or f"HTTP {status_code}"


async def _post_zoko(settings: PlatformSettings, payload: dict) -> httpx.Response:
    async with httpx.AsyncClient() as client:
        return await client.post(
            ZOKO_MESSAGE_URL,
            json=payload,
            headers={"Content-Type": "application/json", "apikey": settings.zoko_api_key},
            timeout=10.0,
        )


async def _post_gupshup(url: str, settings: PlatformSettings, data: dict) -> httpx.Response:
    async with httpx.AsyncClient() as client:
        return await client.post(
            url,
            data=data,
            headers={"apikey": settings.gupshup_api_key, "Cache-Control": "no-cache"},
            timeout=10.0,
        )


async def _post_twilio(settings: PlatformSettings, data: dict) -> httpx.Response:
    async with httpx.AsyncClient() as client:
        return await client.post(
            TWILIO_MESSAGES_URL.format(sid=settings.twilio_account_sid),
            auth=(settings.twilio_account_sid, settings.twilio_auth_token),
            data=data,
            timeout=10.0,
        )


def _require_credentials(settings: Optional[PlatformSettings], provider: str) -> PlatformSettings:
    configured = settings is not None and {
        "zoko": lambda s: bool(s.zoko_api_key),
        "gupshup": lambda s: bool(s.gupshup_api_key and s.gupshup_source_phone),
        "twilio": lambda s: bool(
            s.twilio_account_sid and s.twilio_auth_token and s.twilio_whatsapp_number
        ),
    }.get(provider, lambda s: False)(settings)

    if not configured:
        logger.error(f"❌ WhatsApp provider '{provider}' not configured in platform_settings")
        raise WhatsAppNotConfiguredError(f"{provider.capitalize()} API not configured")
    return settings


async def _dispatch(
    settings: PlatformSettings,
    provider: str,
    phone: str,
    template_id: Optional[str] = None,
    template_args: Optional[list[str]] = None,
    text: Optional[str] = None,
) -> httpx.Response:
    """Send one message (template when template_id is set, otherwise text)"""
    if provider == "zoko":
        recipient = phone[1:] if phone.startswith("+") else phone
        if template_id:
            payload = {
                "channel": "whatsapp",
                "recipient": recipient,
                "type": "template",
                "templateId": template_id,
                "templateArgs": template_args or [],
            }
        else:
            payload = {"channel": "whatsapp", "recipient": recipient, "type": "text", "message": text}
        return await _post_zoko(settings, payload)

    if provider == "gupshup":
        destination = normalize_phone_for_gupshup(phone)
        if not destination:
            raise WhatsAppSendError(f"Unsupported phone number for Gupshup: {phone}")
        data = {
            "channel": "whatsapp",
            "source": settings.gupshup_source_phone,
            "destination": destination,
            "src.name": "Link2pay",
        }
        if template_id:
            data["template"] = json.dumps({"id": template_id, "params": template_args or []})
            return await _post_gupshup(GUPSHUP_TEMPLATE_URL, settings, data)
        data["message"] = json.dumps({"type": "text", "text": text})
        return await _post_gupshup(GUPSHUP_MESSAGE_URL, settings, data)

    # twilio
    data = {
        "To": f"whatsapp:{format_e164(phone)}",
        "From": f"whatsapp:{settings.twilio_whatsapp_number}",
    }
    if template_id:
        data["ContentSid"] = template_id
        data["ContentVariables"] = json.dumps(
            {str(i + 1): arg for i, arg in enumerate(template_args or [])}
        )
    else:
        data["Body"] = text
    return await _post_twilio(settings, data)


async def send_text_message(db: Session, phone: str, text: str) -> dict:
    """
    Send a free-text WhatsApp message.

    Returns:
        {"success": True, "message": ..., "data": ...} or {"success": False, "error": ...}

    Raises:
        WhatsAppNotConfiguredError: provider credentials are missing
    """
    provider = WHATSAPP_PROVIDER
    settings = _require_credentials(get_platform_settings(db), provider)

    logger.info(f"📱 Sending WhatsApp text via {provider} to {phone}")
    try:
        response = await _dispatch(settings, provider, phone, text=text)
    except httpx.HTTPError as e:
        logger.error(f"❌ WhatsApp request failed: {str(e)}")
        return {"success": False, "error": str(e)}

    data, raw = _parse_body(response)
    if response.is_success:
        logger.info(f"✅ WhatsApp text sent to {phone}")
        return {"success": True, "message": "WhatsApp message sent successfully", "data": data}

    error = _error_text(data, raw, response.status_code)
    logger.error(f"❌ WhatsApp text to {phone} failed: {error}")
    return {"success": False, "error": error}


async def send_template_message(
    db: Session,
    phone: str,
    template_id: str,
    template_args: list[str],
    fallback_text: Optional[str] = None,
) -> dict:
    """
    Send an approved WhatsApp template. When the provider rejects the template
    and fallback_text is given, the fallback is sent once as free text.
    """
    provider = WHATSAPP_PROVIDER
    settings = _require_credentials(get_platform_settings(db), provider)

    logger.info(f"📱 Sending WhatsApp template '{template_id}' via {provider} to {phone}")
    try:
        response = await _dispatch(
            settings, provider, phone, template_id=template_id, template_args=template_args
        )
    except httpx.HTTPError as e:
        logger.error(f"❌ WhatsApp request failed: {str(e)}")
        return {"success": False, "error": str(e)}

    data, raw = _parse_body(response)
    if response.is_success and data is not None:
        logger.info(f"✅ WhatsApp template '{template_id}' sent to {phone}")
        return {"success": True, "message": "WhatsApp message sent successfully", "data": data}

    error = _error_text(data, raw, response.status_code)
    if fallback_text and "template" in error.lower():
        logger.warning(f"⚠️ Template '{template_id}' rejected ({error}), sending fallback text")
        fallback = await send_text_message(db, phone, fallback_text)
        if fallback["success"]:
            return {
                "success": True,
                "message": "Message sent via fallback text (template not available)",
                "data": {"fallback": True},
            }
        return fallback

    logger.error(f"❌ WhatsApp template '{template_id}' to {phone} failed: {error}")
    return {"success": False, "error": error}


async def send_invoice_notification(
    db: Session,
    phone: str,
    client_name: str,
    amount: str,
    invoice_number: str,
    invoice_url: Optional[str] = None,
) -> dict:
    url = invoice_url or default_invoice_url(invoice_number)
    # Trailing space keeps the template from swallowing the link
    result = await send_template_message(
        db,
        phone,
        INVOICE_NOTIFICATION_TEMPLATE,
        [client_name, url + " ", amount],
        fallback_text=invoice_fallback_text(client_name, amount, url),
    )
    if result["success"] and "fallback" not in result["message"]:
        result["message"] = "WhatsApp invoice notification sent successfully"
    return result


async def send_payment_confirmation(
    db: Session, phone: str, client_name: str, invoice_number: str
) -> dict:
    result = await send_template_message(
        db,
        phone,
        INVOICE_PAID_TEMPLATE,
        [client_name, invoice_number],
        fallback_text=payment_fallback_text(client_name, invoice_number),
    )
    if result["success"] and "fallback" not in result["message"]:
        result["message"] = "WhatsApp payment confirmation sent successfully"
    return result
