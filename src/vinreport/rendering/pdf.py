"""HTML to PDF rendering through headless Chromium (Playwright)."""

from __future__ import annotations

from typing import Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from vinreport.observability.logging import get_logger
from vinreport.observability.redaction import safe_log_context

logger = get_logger(__name__)


class RenderError(Exception):
    """Raised when the renderer cannot produce a PDF."""


class PdfRenderer(Protocol):
    """Protocol for HTML to PDF renderers."""

    async def render(self, html: str) -> bytes:
        """Render an HTML document to PDF bytes. Raises RenderError."""
        ...


class PlaywrightPdfRenderer:
    """Render with a fresh headless Chromium per document.

    One browser per call keeps renders isolated; webhook volume is low.
    """

    def __init__(self, *, page_format: str = "A4", launch_args: list[str] | None = None) -> None:
        self._page_format = page_format
        self._launch_args = launch_args or ["--no-sandbox", "--disable-dev-shm-usage"]

    async def render(self, html: str) -> bytes:
        try:
            async with async_playwright() as pw:
                browser = await pw.chromium.launch(headless=True, args=self._launch_args)
                try:
                    page = await browser.new_page()
                    await page.set_content(html, wait_until="networkidle")
                    pdf = await page.pdf(format=self._page_format, print_background=True)
                finally:
                    await browser.close()
        except PlaywrightError as e:
            logger.error(
                "pdf render failed",
                extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
            )
            raise RenderError(str(e)) from e

        if not pdf:
            raise RenderError("renderer returned an empty document")

        logger.info(
            "pdf rendered",
            extra={"extra_fields": safe_log_context(html_len=len(html), pdf_bytes=len(pdf))},
        )
        return pdf
