"""Buyer delivery strategies.

DELIVERY_MODE selects one implementation of Deliverer:
- attachment (default): the PDF is attached to the buyer email
- link: the PDF is stored for download and the email carries the URL
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from vinreport.delivery.downloads import DownloadStore
from vinreport.domain.report import VehicleReport
from vinreport.mail.mailer import Attachment, MailDeliveryError, Mailer
from vinreport.rendering.html import render_buyer_email


class DeliveryError(Exception):
    """Raised when the report could not be delivered to the buyer."""


@dataclass(frozen=True)
class DeliveryReceipt:
    channel: str
    detail: str | None = None


class Deliverer(Protocol):
    """Protocol for buyer delivery channels."""

    channel: str

    def deliver(self, report: VehicleReport, pdf_bytes: bytes, recipient: str) -> DeliveryReceipt:
        """Deliver the report. Raises DeliveryError."""
        ...


def report_filename(report: VehicleReport) -> str:
    return f"vehicle-report-{report.vin}.pdf"


def report_subject(report: VehicleReport) -> str:
    return f"Your vehicle report for VIN {report.vin}"


class AttachmentDeliverer:
    channel = "attachment"

    def __init__(self, mailer: Mailer) -> None:
        self._mailer = mailer

    def deliver(self, report: VehicleReport, pdf_bytes: bytes, recipient: str) -> DeliveryReceipt:
        html, text = render_buyer_email(report)
        attachment = Attachment(report_filename(report), pdf_bytes, "application/pdf")
        try:
            self._mailer.send(recipient, report_subject(report), html, text, [attachment])
        except MailDeliveryError as e:
            raise DeliveryError(str(e)) from e
        return DeliveryReceipt(channel=self.channel, detail=attachment.filename)


class DownloadLinkDeliverer:
    channel = "link"

    def __init__(self, mailer: Mailer, store: DownloadStore, public_base_url: str) -> None:
        self._mailer = mailer
        self._store = store
        self._base_url = public_base_url.rstrip("/")

    def download_url(self, token: str) -> str:
        return f"{self._base_url}/downloads/{token}"

    def deliver(self, report: VehicleReport, pdf_bytes: bytes, recipient: str) -> DeliveryReceipt:
        try:
            token = self._store.save(pdf_bytes)
        except OSError as e:
            raise DeliveryError(f"could not store report: {e}") from e

        url = self.download_url(token)
        html, text = render_buyer_email(report, download_url=url)
        try:
            self._mailer.send(recipient, report_subject(report), html, text)
        except MailDeliveryError as e:
            # a retried delivery stores a new file
            self._store.discard(token)
            raise DeliveryError(str(e)) from e
        return DeliveryReceipt(channel=self.channel, detail=url)
