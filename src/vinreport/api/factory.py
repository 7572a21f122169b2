"""FastAPI application factory."""

from fastapi import FastAPI, Request, Response

from vinreport.config import Settings
from vinreport.observability.correlation import CORRELATION_ID_HEADER, correlation_scope
from vinreport.observability.logging import get_logger
from vinreport.observability.redaction import safe_log_context

from .routers import public
from .routes import debug, downloads, reports, webhooks_order
from .services import AppServices, build_services

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    services: AppServices | None = None,
) -> FastAPI:
    """Create the FastAPI app with all routes mounted.

    Args:
        settings: Explicit settings. If None, read from the environment.
        services: Prebuilt service container (tests). Built from settings if None.

    Returns:
        Configured FastAPI application.

    Raises:
        RuntimeError: If mandatory configuration is missing.
    """
    if services is None:
        services = build_services(settings or Settings.from_env())
    settings = services.settings

    if not settings.auth_enabled:
        logger.warning(
            "WEBHOOK_SECRET not configured - webhook and ops routes are unauthenticated",
            extra={"extra_fields": safe_log_context(auth_enabled=False)},
        )

    app = FastAPI(
        title="VIN Report",
        version=settings.app_version,
        docs_url=None,
        redoc_url=None,
    )
    app.state.services = services

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        with correlation_scope(request.headers.get(CORRELATION_ID_HEADER)) as cid:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response

    app.include_router(public.router)
    app.include_router(webhooks_order.router)
    app.include_router(reports.router)
    app.include_router(downloads.router)
    app.include_router(debug.router)

    logger.info(
        "app created",
        extra={
            "extra_fields": safe_log_context(
                delivery_mode=settings.delivery_mode,
                pdf_enabled=settings.pdf_enabled,
                email_enabled=settings.email_enabled,
                version=settings.app_version,
            )
        },
    )
    return app
