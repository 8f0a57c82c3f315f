"""Shared validation and phone formatting utilities"""

import re
from typing import Optional
from urllib.parse import quote

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")

# l2p:<client name>:<amount>:<product id>:<+phone>
QUICK_INVOICE_PATTERN = re.compile(
    r"^l2p:(.+?):(\d+(?:\.\d{1,2})?):([^:]+):(\+\d{1,15})$", re.IGNORECASE
)


def format_phone_for_whatsapp(phone: str) -> str:
    """
    Convert a South African number to the digits-only international form
    used by wa.me links and messaging APIs: 082 123 4567 -> 27821234567
    """
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("0"):
        digits = "27" + digits[1:]
    if not digits.startswith("27") and len(digits) == 9:
        digits = "27" + digits
    return digits


def create_whatsapp_link(phone: str, message: str) -> str:
    return f"https://wa.me/{format_phone_for_whatsapp(phone)}?text={quote(message, safe='')}"


def format_e164(phone: str) -> str:
    """Format a South African number as E.164 (+27...)"""
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("0"):
        return "+27" + digits[1:]
    if len(digits) == 9:
        return "+27" + digits
    return "+" + digits


def validate_e164(phone: Optional[str]) -> bool:
    return bool(phone) and bool(E164_PATTERN.match(phone))


def normalize_phone_for_gupshup(phone: Optional[str]) -> Optional[str]:
    """Gupshup wants 27XXXXXXXXX. Returns None for numbers outside South Africa."""
    if not phone:
        return None
    cleaned = re.sub(r"[\s\-()]", "", phone)
    if cleaned.startswith("+27"):
        return cleaned[1:]
    if cleaned.startswith("27"):
        return cleaned
    if cleaned.startswith("0"):
        return "27" + cleaned[1:]
    return None


def validate_sa_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a South African mobile number to E.164.

    Raises:
        ValueError: If the number cannot be normalized
    """
    if not phone:
        return phone

    normalized = format_e164(phone)
    if not validate_e164(normalized) or not normalized.startswith("+27") or len(normalized) != 12:
        raise ValueError("Phone number must be a valid South African number")
    return normalized


def parse_quick_invoice_command(command: str) -> Optional[dict]:
    """
    Parse a quick invoice command: l2p:<client>:<amount>:<product id>:<+phone>

    Returns:
        None when the text is not a quick command, a dict with an "error" key
        when it is malformed, otherwise the parsed fields.
    """
    match = QUICK_INVOICE_PATTERN.match((command or "").strip())
    if not match:
        return None

    client_name, amount_str, product_id, phone = match.groups()
    client_name = client_name.strip()
    amount = float(amount_str)

    if not client_name:
        return {"error": "Client name cannot be empty"}
    if amount <= 0:
        return {"error": "Amount must be greater than 0"}
    if not validate_e164(phone):
        return {"error": "Invalid phone number format. Use +27XXXXXXXXX"}

    return {
        "client_name": client_name,
        "amount": amount,
        "product_id": product_id.strip(),
        "phone": phone,
    }
