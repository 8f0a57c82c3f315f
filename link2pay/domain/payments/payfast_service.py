"""PayFast service - form signing, payment links and the subscriptions API"""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote_plus, urlencode

import httpx
from pydantic import BaseModel

from ...config import API_BASE_URL, FRONTEND_URL
from ...webhook_security import constant_time_compare

logger = logging.getLogger(__name__)

PAYFAST_PROCESS_URLS = {
    "sandbox": "https://sandbox.payfast.co.za/eng/process",
    "live": "https://www.payfast.co.za/eng/process",
}
PAYFAST_API_URL = "https://api.payfast.co.za"


class PayFastError(Exception):
    """Raised when a PayFast API call fails"""

    pass


class PayFastCredentials(BaseModel):
    merchant_id: Optional[str] = None
    merchant_key: Optional[str] = None
    passphrase: Optional[str] = None
    mode: str = "live"


def process_url(mode: str = "live") -> str:
    return PAYFAST_PROCESS_URLS.get(mode, PAYFAST_PROCESS_URLS["live"])


def _param_string(data: dict, passphrase: Optional[str], url_encode: bool) -> str:
    def encode(value: str) -> str:
        return quote_plus(value) if url_encode else value

    pairs = []
    for key in sorted(data):
        if key == "signature" or data[key] is None:
            continue
        value = str(data[key]).strip()
        if value == "":
            continue
        pairs.append(f"{key}={encode(value)}")

    param_string = "&".join(pairs)
    if passphrase and passphrase.strip():
        param_string += f"&passphrase={encode(passphrase.strip())}"
    return param_string


def generate_signature(data: dict, passphrase: Optional[str] = None, url_encode: bool = False) -> str:
    """
    MD5 signature over the alphabetically sorted, non-empty fields.

    url_encode=True is used for checkout forms we build; notifications
    PayFast posts to us are validated over the raw values.
    """
    return hashlib.md5(_param_string(data, passphrase, url_encode).encode()).hexdigest()


def validate_signature(data: dict, passphrase: Optional[str] = None) -> bool:
    received = data.get("signature")
    if not received:
        logger.warning("⚠️ PayFast notification without signature")
        return False
    return constant_time_compare(generate_signature(data, passphrase), str(received).lower())


def split_name(
    full_name: Optional[str], default: str = "Customer", last_default: Optional[str] = None
) -> tuple[str, str]:
    """
    First word is the first name, the rest is the last name.
    A missing last name becomes last_default, or the first name again when that is None.
    """
    parts = (full_name or "").split()
    first = parts[0] if parts else default
    last = " ".join(parts[1:])
    if not last:
        last = first if last_default is None else last_default
    return first, last


def validate_credentials(credentials: PayFastCredentials) -> tuple[bool, list[str]]:
    errors = []
    if not credentials.merchant_id:
        errors.append("Merchant ID is required")
    elif not credentials.merchant_id.strip().isdigit():
        errors.append("Merchant ID should be numeric")
    if not credentials.merchant_key:
        errors.append("Merchant Key is required")
    if credentials.mode not in PAYFAST_PROCESS_URLS:
        errors.append("Mode must be either sandbox or live")
    return len(errors) == 0, errors


def build_invoice_payment_data(
    credentials: PayFastCredentials,
    invoice_number: str,
    amount: float,
    client_name: Optional[str] = None,
    client_email: Optional[str] = None,
) -> dict:
    first, last = split_name(client_name, last_default="Customer")
    data = {
        "merchant_id": credentials.merchant_id,
        "merchant_key": credentials.merchant_key,
        "return_url": f"{FRONTEND_URL}/invoice/{invoice_number}?status=success",
        "cancel_url": f"{FRONTEND_URL}/invoice/{invoice_number}?status=cancelled",
        "notify_url": f"{API_BASE_URL}/payments/payfast/notify",
        "name_first": first,
        "name_last": last,
        "email_address": client_email or "noreply@example.com",
        "amount": f"{amount:.2f}",
        "item_name": f"Invoice #{invoice_number}",
        "item_description": f"Payment for Invoice #{invoice_number}",
        "custom_str1": invoice_number,
    }
    data["signature"] = generate_signature(data, credentials.passphrase, url_encode=True)
    return data


def build_process_url(data: dict, mode: str = "live") -> str:
    return f"{process_url(mode)}?{urlencode(data)}"


def generate_payment_link(
    credentials: PayFastCredentials,
    invoice_number: str,
    amount: float,
    client_name: Optional[str] = None,
    client_email: Optional[str] = None,
) -> str:
    """Signed PayFast checkout URL for an invoice"""
    data = build_invoice_payment_data(credentials, invoice_number, amount, client_name, client_email)
    return build_process_url(data, credentials.mode)


def generate_test_link(credentials: PayFastCredentials) -> str:
    return generate_payment_link(credentials, "TEST-001", 100.0, "Test Customer", None)


async def cancel_subscription(token: str, merchant_id: str, passphrase: Optional[str]) -> dict:
    """Cancel a PayFast subscription by its billing token"""
    params = {
        "merchant_id": merchant_id,
        "version": "v1",
        "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S"),
        "token": token,
    }
    params["signature"] = generate_signature(params, passphrase)

    logger.info(f"💳 Cancelling PayFast subscription for merchant {merchant_id}")
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{PAYFAST_API_URL}/subscriptions/cancel", data=params, timeout=15.0
            )
    except httpx.HTTPError as e:
        logger.error(f"❌ PayFast cancel request failed: {str(e)}")
        raise PayFastError(f"PayFast request failed: {str(e)}") from e

    if not response.is_success:
        logger.error(f"❌ PayFast cancel failed: HTTP {response.status_code} {response.text[:200]}")
        raise PayFastError(f"PayFast API error: {response.text[:200]}")

    try:
        return response.json()
    except ValueError:
        return {"status": "success", "raw": response.text}
