"""Operator alerts.

Every order that cannot be fulfilled automatically ends up in the admin
mailbox with enough context to finish it by hand. The raw payload goes
into the alert body (capped), never into logs.
"""

from __future__ import annotations

import json
from typing import Any

from vinreport.mail.mailer import MailDeliveryError, Mailer
from vinreport.observability.correlation import get_correlation_id
from vinreport.observability.logging import get_logger
from vinreport.observability.redaction import safe_log_context

logger = get_logger(__name__)

SUBJECT_PREFIX = "[vinreport]"
TRUNCATION_MARKER = "\n... [truncated]"


def cap_text(value: str, max_chars: int) -> str:
    """Truncate value to max_chars, marking the cut."""
    if len(value) <= max_chars:
        return value
    return value[:max_chars] + TRUNCATION_MARKER


def format_payload(payload: Any, max_chars: int) -> str:
    """Pretty-print a payload for an alert body, size-capped."""
    try:
        text = json.dumps(payload, indent=2, ensure_ascii=False, default=str)
    except ValueError:
        # circular structures
        text = repr(payload)
    except RecursionError:
        # the compact encoder goes deeper than the indenting one
        try:
            text = json.dumps(payload, ensure_ascii=False, default=str)
        except RecursionError:
            text = f"<{type(payload).__name__} nested too deeply to print>"
    return cap_text(text, max_chars)


class AdminAlerter:
    """Send diagnostic alerts to the operator mailbox."""

    def __init__(self, mailer: Mailer, admin_email: str, *, payload_max_chars: int = 20000) -> None:
        self._mailer = mailer
        self._admin_email = admin_email
        self._payload_max_chars = payload_max_chars

    def build_body(
        self,
        reason: str,
        context: dict[str, Any],
        payload: Any = None,
        traceback_text: str | None = None,
    ) -> str:
        sections = [
            f"Reason: {reason}",
            f"Correlation ID: {get_correlation_id() or '-'}",
            "",
            "Context:",
            json.dumps(context, indent=2, ensure_ascii=False, default=str),
        ]
        if payload is not None:
            sections += ["", "Payload:", format_payload(payload, self._payload_max_chars)]
        if traceback_text:
            sections += ["", "Traceback:", cap_text(traceback_text, self._payload_max_chars)]
        return "\n".join(sections)

    def alert(
        self,
        subject: str,
        reason: str,
        context: dict[str, Any],
        *,
        payload: Any = None,
        traceback_text: str | None = None,
    ) -> bool:
        """Send one alert. Returns False (and logs) if it could not be sent.

        A failed alert never changes the outcome of the request that raised it.
        """
        body = self.build_body(reason, context, payload, traceback_text)
        try:
            self._mailer.send(self._admin_email, f"{SUBJECT_PREFIX} {subject}", None, body)
        except MailDeliveryError:
            logger.exception(
                "operator alert could not be sent",
                extra={"extra_fields": safe_log_context(reason=reason)},
            )
            return False

        logger.info(
            "operator alert sent",
            extra={"extra_fields": safe_log_context(reason=reason, body_len=len(body))},
        )
        return True
