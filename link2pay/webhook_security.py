"""
Webhook Security Module

Signature and source verification for the payment gateway callbacks:
- Paystack: HMAC-SHA512 of the raw body keyed with the secret key
- PayFast: MD5 parameter signature (see domain.payments.payfast_service) plus
  an optional source IP check against PayFast's notification servers
"""

import hashlib
import hmac
import logging
from typing import Optional

from fastapi import HTTPException, Request

from .config import TRUSTED_PROXY_COUNT

logger = logging.getLogger(__name__)

# PayFast ITN source addresses
PAYFAST_VALID_IPS = {
    "197.97.145.144",
    "41.74.179.194",
    "41.74.179.196",
    "41.74.179.197",
    "41.74.179.198",
    "41.74.179.199",
    "41.74.179.200",
    "41.74.179.201",
    "41.74.179.202",
    "41.74.179.203",
}


def constant_time_compare(a: str, b: str) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Uses hmac.compare_digest which is designed for this purpose.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha512(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA512 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha512).hexdigest()


def get_client_ip(request: Request) -> Optional[str]:
    """
    Caller address as reported by the first X-Forwarded-For hop.
    Client controlled, so only fit for rate-limit keys.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_peer_ip(request: Request, trusted_proxies: Optional[int] = None) -> Optional[str]:
    """
    Address of the peer that reached our outermost trusted proxy.

    With no trusted proxies this is the socket peer. Otherwise it is the
    X-Forwarded-For entry appended by the outermost proxy, counted from the right.
    """
    if trusted_proxies is None:
        trusted_proxies = TRUSTED_PROXY_COUNT
    peer = request.client.host if request.client else None
    if trusted_proxies <= 0:
        return peer

    hops = [h.strip() for h in request.headers.get("x-forwarded-for", "").split(",") if h.strip()]
    if len(hops) < trusted_proxies:
        return None
    return hops[-trusted_proxies]


def is_payfast_ip(ip: Optional[str]) -> bool:
    return bool(ip) and ip in PAYFAST_VALID_IPS


def verify_payfast_source(request: Request) -> None:
    """Reject notifications that did not come from PayFast"""
    ip = get_peer_ip(request)
    if not is_payfast_ip(ip):
        logger.warning(f"🚫 PayFast notification from untrusted source: {ip}")
        raise HTTPException(status_code=403, detail="Untrusted notification source")


async def verify_paystack_webhook(request: Request, secret: Optional[str]) -> bytes:
    """
    Verify a Paystack webhook.

    Paystack signs the raw request body with HMAC-SHA512 using the account's
    secret key and sends the hex digest in the x-paystack-signature header.

    Returns:
        The verified raw body
    """
    raw_body = await request.body()
    received_signature = request.headers.get("x-paystack-signature", "")

    if not secret:
        logger.error("❌ PAYSTACK_SECRET_KEY not configured, cannot verify webhook")
        raise HTTPException(status_code=503, detail="Paystack not configured")

    if not received_signature:
        logger.error("❌ Missing x-paystack-signature header")
        raise HTTPException(status_code=401, detail="Missing webhook signature")

    expected_signature = compute_hmac_sha512(secret, raw_body)
    if not constant_time_compare(expected_signature, received_signature):
        logger.error("❌ Paystack webhook signature verification failed")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    logger.info("✅ Paystack webhook signature verified")
    return raw_body
