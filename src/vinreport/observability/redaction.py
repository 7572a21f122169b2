"""Redaction helpers for safe logging. All buyer data must pass through these.

Webhook payloads carry buyer names, addresses, phone numbers and emails.
Logs only ever get masked values, prefixes, or the shape of a payload.
"""

import re
from datetime import date, datetime
from typing import Any

_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# Standalone digit runs only; ids like VR-20260105-1234ABCD stay readable
_PHONE_PATTERN = re.compile(r"(?<![\w-])\+?\d[\d\s\-()]{8,}\d(?![\w-])")

_REDACTED = "[REDACTED]"
_MAX_STRING_LENGTH = 200


def redact_string(value: str) -> str:
    """Mask emails and phone numbers, and cap the length."""
    masked = _PHONE_PATTERN.sub(_REDACTED, _EMAIL_PATTERN.sub(_REDACTED, value))
    if len(masked) > _MAX_STRING_LENGTH:
        return masked[:_MAX_STRING_LENGTH] + "..."
    return masked


def mask_email(email: str | None) -> str:
    """Mask an email address for logs.

    Keeps the first character of the local part and the domain:
    ``buyer@example.com`` becomes ``b***@example.com``.
    """
    if not email:
        return "null"
    local, sep, domain = email.partition("@")
    if not sep:
        return _REDACTED
    return f"{local[:1]}***@{domain}"


def prefix(value: str | None, length: int = 8) -> str:
    """Short identifying prefix for order keys, VINs and tokens."""
    if not value:
        return "null"
    return value[:length]


def redact_value(value: Any) -> str:
    """Loggable string for any value.

    Scalars pass (strings masked), containers are reduced to their shape,
    anything else to its type name.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, (bytes, bytearray)):
        return f"bytes(len={len(value)})"
    if isinstance(value, dict):
        return f"dict(keys={sorted(str(k) for k in value)})"
    if isinstance(value, (list, tuple, set, frozenset)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build an extra_fields dict with every value redacted."""
    return {key: redact_value(value) for key, value in kwargs.items()}
