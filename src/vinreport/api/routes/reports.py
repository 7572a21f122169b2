"""Report lookup routes (no PDF, no email).

- GET /report/{vin}: public preview, decode only, reduced fields.
- GET /premium-report/{vin}: full report JSON for ops lookups.
- GET /api/vin/{vin}: raw provider decode response.

Premium and raw lookups consume paid provider calls and sit behind the
shared secret.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from vinreport.api.auth import require_shared_secret
from vinreport.api.services import get_services
from vinreport.domain.extraction import looks_like_vin, normalize_vin
from vinreport.domain.report import DecodeFailure, strip_sensitive
from vinreport.observability.logging import get_logger
from vinreport.observability.redaction import prefix, safe_log_context

router = APIRouter(tags=["reports"])

logger = get_logger(__name__)


class VehicleSummary(BaseModel):
    make: str | None = None
    model: str | None = None
    year: str | None = None
    body: str | None = None
    fuel: str | None = None
    transmission: str | None = None


class ReportPreview(BaseModel):
    vin: str
    vehicle: VehicleSummary


def _valid_vin(raw: str) -> str:
    if not looks_like_vin(raw):
        raise HTTPException(status_code=400, detail="invalid VIN")
    return normalize_vin(raw)


def _decode_failed_response(failure: DecodeFailure) -> JSONResponse:
    return JSONResponse(
        status_code=502,
        content={
            "error": failure.reason,
            "upstream_status": failure.status,
            "upstream_body": failure.body,
        },
    )


@router.get("/report/{vin}", response_model=ReportPreview)
async def report_preview(vin: str, request: Request):
    """Reduced vehicle summary, without premium checks."""
    clean_vin = _valid_vin(vin)
    result = await get_services(request).reports.build(clean_vin, include_checks=False)
    if isinstance(result, DecodeFailure):
        return _decode_failed_response(result)
    return result.summary()


@router.get("/premium-report/{vin}", dependencies=[Depends(require_shared_secret)])
async def premium_report(vin: str, request: Request):
    """Full VehicleReport JSON."""
    clean_vin = _valid_vin(vin)
    result = await get_services(request).reports.build(clean_vin)
    if isinstance(result, DecodeFailure):
        return _decode_failed_response(result)
    logger.info(
        "premium report served",
        extra={"extra_fields": safe_log_context(vin_prefix=prefix(clean_vin), report_id=result.report_id)},
    )
    return result.to_dict()


@router.get("/api/vin/{vin}", dependencies=[Depends(require_shared_secret)])
async def raw_decode(vin: str, request: Request):
    """Provider decode response, account fields stripped."""
    clean_vin = _valid_vin(vin)
    result = await get_services(request).reports.raw_decode(clean_vin)
    if not result.json:
        return JSONResponse(
            status_code=500 if result.status else 502,
            content={"error": "Invalid response from API", "upstream_status": result.status},
        )
    return JSONResponse(
        status_code=200 if result.ok else 502,
        content=strip_sensitive(result.json),
    )
