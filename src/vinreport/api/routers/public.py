"""Liveness and build metadata routes."""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from vinreport.api.services import get_services

router = APIRouter()


class VersionResponse(BaseModel):
    name: str
    version: str
    commit: str


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/version", response_model=VersionResponse)
def version(request: Request) -> VersionResponse:
    """Build metadata."""
    settings = get_services(request).settings
    return VersionResponse(
        name="vinreport",
        version=settings.app_version,
        commit=settings.git_commit,
    )
