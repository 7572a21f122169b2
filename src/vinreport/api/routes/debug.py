"""Integration debugging routes - NOT for production use.

Echoes what the shop platform actually sends (headers, query, body) so a
webhook configuration can be checked end to end. Mounted always, but 404s
unless DEBUG_ECHO_ENABLED=true, and requires the shared secret.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException, Request

from vinreport.api.auth import require_shared_secret
from vinreport.api.services import get_services
from vinreport.observability.correlation import get_correlation_id
from vinreport.observability.logging import get_logger
from vinreport.observability.redaction import safe_log_context

router = APIRouter(prefix="/debug", tags=["debug"])

logger = get_logger(__name__)


def _require_enabled(request: Request) -> None:
    if not get_services(request).settings.debug_echo_enabled:
        raise HTTPException(status_code=404, detail="Not Found")


@router.api_route(
    "/echo",
    methods=["GET", "POST"],
    dependencies=[Depends(_require_enabled), Depends(require_shared_secret)],
)
async def debug_echo(request: Request) -> dict:
    """Return received method, headers, query and body verbatim."""
    body = await request.body()
    try:
        parsed = json.loads(body) if body.strip() else None
    except ValueError:
        parsed = None

    logger.info(
        "debug echo",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                method=request.method,
                body_len=len(body),
            )
        },
    )
    return {
        "method": request.method,
        "path": request.url.path,
        "headers": dict(request.headers),
        "query": dict(request.query_params),
        "json": parsed,
        "body": body.decode("utf-8", errors="replace"),
    }
