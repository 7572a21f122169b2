"""Shared-secret authentication for webhook and ops routes.

The shop platform cannot always set custom headers, so the secret is also
accepted as a query parameter. An empty WEBHOOK_SECRET disables the check
entirely (operator opt-out, logged at startup).
"""

from __future__ import annotations

import hmac

from fastapi import HTTPException, Request

from vinreport.observability.logging import get_logger
from vinreport.observability.redaction import safe_log_context

logger = get_logger(__name__)

SECRET_HEADERS = ("X-Webhook-Secret", "X-Shared-Secret")
SECRET_QUERY_PARAMS = ("secret", "token")


def extract_credential(request: Request) -> str | None:
    """Read the caller's credential from headers, bearer token or query.

    Returns:
        Credential string, or None if none was supplied.
    """
    for header in SECRET_HEADERS:
        value = request.headers.get(header)
        if value:
            return value

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]

    for param in SECRET_QUERY_PARAMS:
        value = request.query_params.get(param)
        if value:
            return value
    return None


def verify_shared_secret(request: Request, expected: str) -> bool:
    """Compare the supplied credential with the configured secret.

    Args:
        request: FastAPI request object.
        expected: Configured shared secret. Empty means auth is disabled.

    Returns:
        True if authenticated (or auth disabled), False otherwise.
    """
    if not expected:
        return True

    supplied = extract_credential(request)
    if not supplied:
        logger.warning(
            "shared secret missing",
            extra={"extra_fields": safe_log_context(path=request.url.path)},
        )
        return False

    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        logger.warning(
            "shared secret mismatch",
            extra={"extra_fields": safe_log_context(path=request.url.path)},
        )
        return False
    return True


def require_shared_secret(request: Request) -> None:
    """FastAPI dependency for ops routes. Raises 401 on failure."""
    settings = request.app.state.services.settings
    if not verify_shared_secret(request, settings.webhook_secret):
        raise HTTPException(status_code=401, detail="unauthorized")
