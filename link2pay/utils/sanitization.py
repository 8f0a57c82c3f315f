import html
import re
from typing import Any, Optional


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Sanitize a string by escaping HTML special characters to prevent XSS.
    Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    return html.escape(value.strip(), quote=True)


def sanitize_dict(data: dict[str, Any], fields: Optional[list[str]] = None) -> dict[str, Any]:
    """
    Escape string values in a dictionary. If fields is None, sanitizes every string.
    Nested dicts are handled recursively.
    """
    if not data:
        return data

    sanitized = {}
    for key, value in data.items():
        if fields is not None and key not in fields:
            sanitized[key] = value
        elif isinstance(value, str):
            sanitized[key] = sanitize_string(value)
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, fields)
        else:
            sanitized[key] = value
    return sanitized


def slugify_handle(value: Optional[str], max_length: int = 20) -> str:
    """Lowercase alphanumerics only, truncated. Used for store handles."""
    return re.sub(r"[^a-z0-9]", "", (value or "").lower())[:max_length]
