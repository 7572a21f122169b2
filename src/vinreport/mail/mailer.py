"""Outbound email via SMTP.

Security: NEVER log recipient addresses or bodies. Only masked addresses,
subjects' lengths and attachment sizes.
"""

from __future__ import annotations

import smtplib
import ssl
import uuid
from dataclasses import dataclass
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate
from typing import Protocol

from vinreport.observability.logging import get_logger
from vinreport.observability.redaction import mask_email, safe_log_context

logger = get_logger(__name__)

# Timeout for SMTP connections (seconds)
SMTP_TIMEOUT = 15
SMTP_SSL_PORT = 465


class MailDeliveryError(Exception):
    """Raised when a message could not be handed to the SMTP server."""


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    mime_type: str = "application/octet-stream"


class Mailer(Protocol):
    """Protocol for mail transports."""

    def send(
        self,
        to_addr: str,
        subject: str,
        html: str | None,
        text: str,
        attachments: list[Attachment] | None = None,
    ) -> None:
        """Send one message. Raises MailDeliveryError."""
        ...


def build_message(
    *,
    sender: str,
    sender_name: str | None,
    to_addr: str,
    subject: str,
    html: str | None,
    text: str,
    attachments: list[Attachment] | None = None,
) -> MIMEMultipart:
    """Build a multipart message: text/html alternative plus attachments."""
    domain = sender.split("@")[-1] if "@" in sender else "localhost"

    outer = MIMEMultipart("mixed")
    outer["Subject"] = subject
    outer["From"] = formataddr((sender_name, sender)) if sender_name else sender
    outer["To"] = to_addr
    outer["Message-ID"] = f"<{uuid.uuid4()}@{domain}>"
    outer["Date"] = formatdate(usegmt=True)

    alt = MIMEMultipart("alternative")
    alt.attach(MIMEText(text or "", "plain", _charset="utf-8"))
    if html:
        alt.attach(MIMEText(html, "html", _charset="utf-8"))
    outer.attach(alt)

    for att in attachments or []:
        main, _, sub = att.mime_type.partition("/")
        part = MIMEBase(main or "application", sub or "octet-stream")
        part.set_payload(att.content)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=att.filename)
        outer.attach(part)

    return outer


class SmtpMailer:
    """SMTP transport: STARTTLS on 587/25, implicit TLS on 465."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        user: str,
        password: str,
        sender: str,
        sender_name: str | None = None,
        timeout: float = SMTP_TIMEOUT,
    ) -> None:
        if not host or not sender:
            raise RuntimeError("Missing SMTP config: SMTP_HOST and MAIL_FROM required")
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._sender = sender
        self._sender_name = sender_name
        self._timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self._port == SMTP_SSL_PORT:
            return smtplib.SMTP_SSL(self._host, self._port, timeout=self._timeout, context=context)
        server = smtplib.SMTP(self._host, self._port, timeout=self._timeout)
        server.starttls(context=context)
        return server

    def send(
        self,
        to_addr: str,
        subject: str,
        html: str | None,
        text: str,
        attachments: list[Attachment] | None = None,
    ) -> None:
        msg = build_message(
            sender=self._sender,
            sender_name=self._sender_name,
            to_addr=to_addr,
            subject=subject,
            html=html,
            text=text,
            attachments=attachments,
        )
        log_ctx = safe_log_context(
            to=mask_email(to_addr),
            subject_len=len(subject),
            attachments=len(attachments or []),
            attachment_bytes=sum(len(a.content) for a in attachments or []),
        )

        try:
            with self._connect() as server:
                if self._user or self._password:
                    server.login(self._user, self._password)
                server.sendmail(self._sender, [to_addr], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "smtp send failed",
                extra={"extra_fields": {**log_ctx, **safe_log_context(error_type=type(e).__name__)}},
            )
            raise MailDeliveryError(f"{type(e).__name__}: {e}") from e

        logger.info("email sent", extra={"extra_fields": log_ctx})


class LogOnlyMailer:
    """Mailer used when EMAIL_ENABLED=false: logs and drops every message."""

    def send(
        self,
        to_addr: str,
        subject: str,
        html: str | None,
        text: str,
        attachments: list[Attachment] | None = None,
    ) -> None:
        logger.info(
            "email sending disabled, message dropped",
            extra={
                "extra_fields": safe_log_context(
                    to=mask_email(to_addr),
                    subject_len=len(subject),
                    attachments=len(attachments or []),
                )
            },
        )
