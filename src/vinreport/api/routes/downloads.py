"""Hosted report downloads (DELIVERY_MODE=link)."""

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse

from vinreport.api.services import get_services

router = APIRouter(tags=["downloads"])


@router.get("/downloads/{token}")
def download_report(token: str, request: Request) -> FileResponse:
    """Serve a stored report PDF. 404 when unknown or expired."""
    path = get_services(request).downloads.resolve(token)
    if path is None:
        raise HTTPException(status_code=404, detail="not found")
    return FileResponse(path, media_type="application/pdf", filename="vehicle-report.pdf")
