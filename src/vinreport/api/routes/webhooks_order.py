"""Order webhook route - public endpoint for shop payment notifications.

Security rules:
- Check the shared secret on every request (header or query parameter).
- Never log payload values or buyer emails.
- 200 for outcomes a retry cannot change (sent, duplicate, manual check).
- 5xx only when a retry may help (provider/renderer/SMTP outage).
"""

from __future__ import annotations

import asyncio
import json
import traceback
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from vinreport.api.auth import verify_shared_secret
from vinreport.api.services import get_services
from vinreport.observability.correlation import get_correlation_id
from vinreport.observability.logging import get_logger
from vinreport.observability.redaction import safe_log_context
from vinreport.pipeline.webhook import STATUS_FAILED

router = APIRouter(tags=["webhooks"])

logger = get_logger(__name__)


def _parse_payload(body: bytes) -> Any:
    """Parse JSON; non-JSON bodies are kept as text (manual review path)."""
    if not body.strip():
        return {}
    try:
        return json.loads(body)
    except (ValueError, RecursionError):
        # invalid or too deeply nested to parse
        return body.decode("utf-8", errors="replace")


@router.post("/webhook/order")
async def order_webhook(request: Request) -> JSONResponse:
    """Receive a paid-order notification and deliver the vehicle report.

    Returns:
        200 with status sent / duplicate_ignored / needs_manual_check /
            pdf_disabled, or failed when a retry cannot help.
        401 if the shared secret is missing or wrong.
        502/504 if a provider failed transiently (platform should retry).
        500 on unexpected errors.
    """
    services = get_services(request)
    correlation_id = get_correlation_id()

    # 1. Auth - no side effects, no alert on failure
    if not verify_shared_secret(request, services.settings.webhook_secret):
        return JSONResponse(
            status_code=401,
            content={"success": False, "status": "unauthorized"},
        )

    pipeline = services.pipeline
    payload: Any = None

    try:
        # 2. Read payload
        body = await request.body()
        payload = _parse_payload(body)

        logger.info(
            "order webhook received",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    body_len=len(body),
                    payload_type=type(payload).__name__,
                )
            },
        )

        # 3. Run the pipeline under the overall deadline
        outcome = await asyncio.wait_for(
            pipeline.handle(payload),
            timeout=services.settings.pipeline_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.error(
            "order webhook timed out",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        await pipeline.alert(
            "Order webhook timed out",
            "pipeline_timeout",
            {"timeout_seconds": services.settings.pipeline_timeout_seconds},
            payload=payload,
        )
        return JSONResponse(
            status_code=504,
            content={"success": False, "status": STATUS_FAILED, "stage": "timeout", "retryable": True},
        )
    except Exception as e:
        traceback_text = traceback.format_exc()
        logger.exception(
            "order webhook processing failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        await pipeline.alert(
            "Unexpected error while processing order webhook",
            "unexpected_error",
            {"error_type": type(e).__name__},
            payload=payload,
            traceback_text=traceback_text,
        )
        return JSONResponse(
            status_code=500,
            content={"success": False, "status": STATUS_FAILED, "stage": "internal"},
        )

    logger.info(
        "order webhook processed",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                status=outcome.status,
                http_status=outcome.http_status,
            )
        },
    )
    return JSONResponse(status_code=outcome.http_status, content=outcome.to_body())
