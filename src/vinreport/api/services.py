"""Service wiring: one container per app, built from Settings.

Routes reach collaborators through request.app.state.services, so tests
can build an app around fakes (see build_services overrides).
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from vinreport.config import Settings
from vinreport.delivery.deliverers import AttachmentDeliverer, Deliverer, DownloadLinkDeliverer
from vinreport.delivery.downloads import DownloadStore
from vinreport.infra.dedupe import DedupeStore, InMemoryDedupeStore
from vinreport.infra.single_flight import KeyedLock
from vinreport.mail.alerts import AdminAlerter
from vinreport.mail.mailer import LogOnlyMailer, Mailer, SmtpMailer
from vinreport.pipeline.webhook import OrderPipeline
from vinreport.rendering.pdf import PdfRenderer, PlaywrightPdfRenderer
from vinreport.services.reports import ReportService
from vinreport.vindecoder.client import DecodeClient


@dataclass
class AppServices:
    settings: Settings
    decode_client: DecodeClient
    reports: ReportService
    mailer: Mailer
    downloads: DownloadStore
    dedupe_store: DedupeStore
    pipeline: OrderPipeline


def build_mailer(settings: Settings) -> Mailer:
    if not settings.email_enabled:
        return LogOnlyMailer()
    return SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        user=settings.smtp_user,
        password=settings.smtp_password,
        sender=settings.mail_from,
        sender_name=settings.mail_from_name,
    )


def build_deliverer(settings: Settings, mailer: Mailer, downloads: DownloadStore) -> Deliverer:
    if settings.delivery_mode == "link":
        return DownloadLinkDeliverer(mailer, downloads, settings.public_base_url)
    return AttachmentDeliverer(mailer)


def build_services(
    settings: Settings,
    *,
    decode_client: DecodeClient | None = None,
    mailer: Mailer | None = None,
    renderer: PdfRenderer | None = None,
    dedupe_store: DedupeStore | None = None,
) -> AppServices:
    """Wire every collaborator from settings; keyword overrides win."""
    decode_client = decode_client or DecodeClient(
        settings.vindecoder_api_key,
        settings.vindecoder_secret_key,
        base_url=settings.vindecoder_base_url,
        api_version=settings.vindecoder_api_version,
        timeout=settings.vindecoder_timeout_seconds,
    )
    mailer = mailer or build_mailer(settings)
    dedupe_store = dedupe_store or InMemoryDedupeStore()
    downloads = DownloadStore(settings.download_dir, settings.download_ttl_seconds)
    reports = ReportService(decode_client, stage_timeout=settings.stage_timeout_seconds)

    pipeline = OrderPipeline(
        reports=reports,
        renderer=renderer or PlaywrightPdfRenderer(),
        deliverer=build_deliverer(settings, mailer, downloads),
        alerter=AdminAlerter(
            mailer,
            settings.admin_email,
            payload_max_chars=settings.alert_payload_max_chars,
        ),
        store=dedupe_store,
        locks=KeyedLock(),
        dedupe_ttl_seconds=settings.dedupe_ttl_seconds,
        pdf_enabled=settings.pdf_enabled,
        stage_timeout=settings.stage_timeout_seconds,
        render_timeout=settings.render_timeout_seconds,
    )

    return AppServices(
        settings=settings,
        decode_client=decode_client,
        reports=reports,
        mailer=mailer,
        downloads=downloads,
        dedupe_store=dedupe_store,
        pipeline=pipeline,
    )


def get_services(request: Request) -> AppServices:
    """Get the service container of the app serving this request."""
    return request.app.state.services
