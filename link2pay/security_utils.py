"""
Credential encryption for merchant secrets stored in the database
(PayFast passphrases). Keys are derived from SECRET_KEY.
"""

import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from .config import SECRET_KEY

logger = logging.getLogger(__name__)

# Fernet needs 32 url-safe base64 encoded bytes; SECRET_KEY may be any string
cipher_suite = Fernet(base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest()))


def encrypt_credential(credential: str) -> str:
    """Encrypt a credential for storage"""
    return cipher_suite.encrypt(credential.encode()).decode()


def decrypt_credential(encrypted_credential: Optional[str]) -> Optional[str]:
    """
    Decrypt a stored credential.

    Rows written before encryption was introduced hold plaintext; those are
    returned unchanged so existing merchants keep working.
    """
    if not encrypted_credential:
        return None
    try:
        return cipher_suite.decrypt(encrypted_credential.encode()).decode()
    except InvalidToken:
        logger.warning("⚠️ Stored credential is not encrypted, using raw value")
        return encrypted_credential


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    """Mask a secret for logs and API responses"""
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]
