"""Order webhook pipeline: extract -> dedupe -> report -> PDF -> deliver.

Guarantees:
- One order key is processed at a time (single-flight lock), and a key
  marked processed is never delivered twice within the dedupe TTL.
- A key is marked only at a terminal outcome: sent, manual check,
  PDF disabled, or a failure that will not succeed on retry.
  Transient failures (provider outage, renderer crash, SMTP error) stay
  unmarked so the platform can retry.
- Every order that is not delivered produces exactly one operator alert.
- The buyer only ever receives the final report.

Security: payload values and buyer emails are NEVER logged; the raw
payload only travels to the operator alert.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable

from vinreport.delivery.deliverers import Deliverer, DeliveryError
from vinreport.domain.extraction import ExtractedFields, extract_fields
from vinreport.domain.report import DecodeFailure, VehicleReport
from vinreport.infra.dedupe import DedupeStore
from vinreport.infra.single_flight import KeyedLock
from vinreport.mail.alerts import AdminAlerter
from vinreport.observability.logging import get_logger
from vinreport.observability.redaction import mask_email, prefix, safe_log_context
from vinreport.rendering.html import render_report_html
from vinreport.rendering.pdf import PdfRenderer, RenderError
from vinreport.services.reports import ReportService

logger = get_logger(__name__)

STATUS_SENT = "sent"
STATUS_DUPLICATE = "duplicate_ignored"
STATUS_MANUAL_CHECK = "needs_manual_check"
STATUS_PDF_DISABLED = "pdf_disabled"
STATUS_FAILED = "failed"

RENDER_ATTEMPTS = 2


@dataclass(frozen=True)
class PipelineOutcome:
    """Terminal state of one webhook delivery, as returned to the platform."""

    status: str
    success: bool
    http_status: int = 200
    details: dict[str, Any] = field(default_factory=dict)

    def to_body(self) -> dict[str, Any]:
        return {"success": self.success, "status": self.status, **self.details}


class OrderPipeline:
    """Process order webhooks end to end.

    Collaborators are injected; the dedupe store and lock map are the
    only shared mutable state.
    """

    def __init__(
        self,
        *,
        reports: ReportService,
        renderer: PdfRenderer,
        deliverer: Deliverer,
        alerter: AdminAlerter,
        store: DedupeStore,
        locks: KeyedLock | None = None,
        dedupe_ttl_seconds: float = 24 * 3600,
        pdf_enabled: bool = True,
        stage_timeout: float = 20.0,
        render_timeout: float = 25.0,
        html_renderer: Callable[[VehicleReport], str] = render_report_html,
    ) -> None:
        self._reports = reports
        self._renderer = renderer
        self._deliverer = deliverer
        self._alerter = alerter
        self._store = store
        self._locks = locks or KeyedLock()
        self._dedupe_ttl = dedupe_ttl_seconds
        self._pdf_enabled = pdf_enabled
        self._stage_timeout = stage_timeout
        self._render_timeout = render_timeout
        self._html_renderer = html_renderer

    async def handle(self, payload: Any) -> PipelineOutcome:
        """Run the pipeline for one authenticated webhook payload."""
        fields = extract_fields(payload)

        if fields.order_key_generated:
            logger.warning(
                "order payload has no explicit identifier, dedupe disabled for it",
                extra={"extra_fields": safe_log_context(order_key_source="fallback")},
            )

        async with self._locks.hold(fields.order_key):
            if self._store.has(fields.order_key):
                logger.info(
                    "duplicate order webhook ignored",
                    extra={"extra_fields": safe_log_context(order_key_prefix=prefix(fields.order_key))},
                )
                return PipelineOutcome(
                    status=STATUS_DUPLICATE,
                    success=True,
                    details={"order_key": fields.order_key},
                )
            return await self._process(payload, fields)

    async def _process(self, payload: Any, fields: ExtractedFields) -> PipelineOutcome:
        order_key = fields.order_key
        logger.info(
            "order webhook extracted",
            extra={
                "extra_fields": safe_log_context(
                    order_key_prefix=prefix(order_key),
                    vin_found=fields.vin is not None,
                    email=mask_email(fields.email),
                )
            },
        )

        # 1. Manual review when required fields are missing
        if not fields.is_complete():
            self._mark(order_key)
            await self.alert(
                "Order needs manual check",
                STATUS_MANUAL_CHECK,
                {
                    "order_key": order_key,
                    "order_key_generated": fields.order_key_generated,
                    "vin": fields.vin,
                    "email": fields.email,
                    "missing": fields.missing(),
                },
                payload=payload,
            )
            return PipelineOutcome(
                status=STATUS_MANUAL_CHECK,
                success=False,
                details={"order_key": order_key, "missing": fields.missing()},
            )

        vin, email = fields.vin, fields.email
        context: dict[str, Any] = {"order_key": order_key, "vin": vin, "email": email}

        # 2. Provider data and report assembly
        report = await self._reports.build(vin)
        if isinstance(report, DecodeFailure):
            return await self._decode_failed(report, context, payload)
        context["report_id"] = report.report_id

        # 3. PDF rendering switched off: hand over to the operator
        if not self._pdf_enabled:
            self._mark(order_key)
            await self.alert(
                f"PDF disabled, deliver report {report.report_id} manually",
                STATUS_PDF_DISABLED,
                context,
            )
            return PipelineOutcome(
                status=STATUS_PDF_DISABLED,
                success=True,
                details={"order_key": order_key, "vin": vin, "report_id": report.report_id},
            )

        # 4. Render
        try:
            pdf = await self._render(self._html_renderer(report))
        except RenderError as e:
            await self.alert(
                f"PDF rendering failed for {vin}",
                "render_failed",
                {**context, "error": str(e)},
            )
            return self._transient_failure("render", order_key)

        # 5. Deliver
        try:
            receipt = await asyncio.wait_for(
                asyncio.to_thread(self._deliverer.deliver, report, pdf, email),
                timeout=self._stage_timeout,
            )
        except (DeliveryError, asyncio.TimeoutError) as e:
            await self.alert(
                f"Report delivery failed for {vin}, resend manually",
                "delivery_failed",
                {
                    **context,
                    "channel": self._deliverer.channel,
                    "error": str(e) or type(e).__name__,
                },
            )
            return self._transient_failure("deliver", order_key)

        # 6. Finalize
        self._mark(order_key)
        logger.info(
            "order report delivered",
            extra={
                "extra_fields": safe_log_context(
                    order_key_prefix=prefix(order_key),
                    report_id=report.report_id,
                    channel=receipt.channel,
                    pdf_bytes=len(pdf),
                )
            },
        )
        return PipelineOutcome(
            status=STATUS_SENT,
            success=True,
            details={
                "order_key": order_key,
                "vin": vin,
                "report_id": report.report_id,
                "delivery": receipt.channel,
            },
        )

    async def _decode_failed(
        self, failure: DecodeFailure, context: dict[str, Any], payload: Any
    ) -> PipelineOutcome:
        await self.alert(
            f"Vehicle decode failed for {context['vin']}",
            failure.reason,
            {
                **context,
                "upstream_status": failure.status,
                "upstream_body": failure.body,
                "retryable": failure.retryable,
            },
            payload=payload,
        )
        if failure.retryable:
            return self._transient_failure("decode", context["order_key"])

        self._mark(context["order_key"])
        return PipelineOutcome(
            status=STATUS_FAILED,
            success=False,
            details={
                "order_key": context["order_key"],
                "reason": failure.reason,
                "upstream_status": failure.status,
                "retryable": False,
            },
        )

    async def _render(self, html: str) -> bytes:
        """Render with one retry. Raises RenderError after the last attempt."""
        last_error: RenderError | None = None
        for attempt in range(RENDER_ATTEMPTS):
            try:
                return await asyncio.wait_for(self._renderer.render(html), timeout=self._render_timeout)
            except asyncio.TimeoutError:
                last_error = RenderError(f"render timed out after {self._render_timeout}s")
            except RenderError as e:
                last_error = e
            logger.warning(
                "pdf render attempt failed",
                extra={"extra_fields": safe_log_context(attempt=attempt, error=str(last_error))},
            )
        raise last_error  # type: ignore[misc]

    def _transient_failure(self, stage: str, order_key: str) -> PipelineOutcome:
        return PipelineOutcome(
            status=STATUS_FAILED,
            success=False,
            http_status=502,
            details={"order_key": order_key, "stage": stage, "retryable": True},
        )

    def _mark(self, order_key: str) -> None:
        self._store.mark_processed(order_key, self._dedupe_ttl)

    async def alert(
        self,
        subject: str,
        reason: str,
        context: dict[str, Any],
        *,
        payload: Any = None,
        traceback_text: str | None = None,
    ) -> bool:
        """Send an operator alert without blocking the event loop."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    self._alerter.alert,
                    subject,
                    reason,
                    context,
                    payload=payload,
                    traceback_text=traceback_text,
                ),
                timeout=self._stage_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                "operator alert timed out",
                extra={"extra_fields": safe_log_context(reason=reason)},
            )
            return False
