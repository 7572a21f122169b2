"""Report fetching: provider calls + assembly, off the event loop.

Decode runs first; without it there is no report. Stolen-check and market
value then run concurrently. Each call runs in a worker thread under the
stage timeout; optional calls that raise or time out become unavailable.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from vinreport.domain.report import DecodeFailure, VehicleReport, assemble_report
from vinreport.infra.time import utc_today
from vinreport.observability.logging import get_logger
from vinreport.observability.redaction import prefix, safe_log_context
from vinreport.vindecoder.client import (
    ACTION_DECODE,
    ACTION_MARKET_VALUE,
    ACTION_STOLEN_CHECK,
    DecodeClient,
    DecodeResult,
)

logger = get_logger(__name__)


class ReportService:
    """Fetch provider data for a VIN and assemble a VehicleReport."""

    def __init__(
        self,
        client: DecodeClient,
        *,
        stage_timeout: float = 20.0,
        today: Callable = utc_today,
    ) -> None:
        self._client = client
        self._stage_timeout = stage_timeout
        self._today = today

    async def _call(self, vin: str, action: str) -> DecodeResult:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._client.fetch_action, vin, action),
                timeout=self._stage_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "vindecoder call timed out",
                extra={"extra_fields": safe_log_context(action=action, vin_prefix=prefix(vin))},
            )
            return DecodeResult.unavailable()

    async def _optional_call(self, vin: str, action: str) -> DecodeResult:
        try:
            return await self._call(vin, action)
        except Exception:
            logger.exception(
                "optional vindecoder call failed",
                extra={"extra_fields": safe_log_context(action=action, vin_prefix=prefix(vin))},
            )
            return DecodeResult.unavailable()

    async def build(self, vin: str, *, include_checks: bool = True) -> VehicleReport | DecodeFailure:
        """Fetch and assemble the report for a normalized VIN.

        Args:
            vin: Normalized VIN.
            include_checks: Also run stolen-check and market-value.

        Returns:
            VehicleReport, or DecodeFailure if the decode call was unusable.
        """
        decode = await self._call(vin, ACTION_DECODE)

        stolen: DecodeResult | None = None
        market_value: DecodeResult | None = None
        if include_checks and decode.ok:
            stolen, market_value = await asyncio.gather(
                self._optional_call(vin, ACTION_STOLEN_CHECK),
                self._optional_call(vin, ACTION_MARKET_VALUE),
            )

        result = assemble_report(vin, decode, stolen, market_value, self._today())

        if isinstance(result, DecodeFailure):
            logger.warning(
                "report assembly failed: decode unavailable",
                extra={
                    "extra_fields": safe_log_context(
                        vin_prefix=prefix(vin),
                        status=result.status,
                        retryable=result.retryable,
                    )
                },
            )
        else:
            logger.info(
                "report assembled",
                extra={
                    "extra_fields": safe_log_context(
                        vin_prefix=prefix(vin),
                        report_id=result.report_id,
                        stolen_status=result.checks.stolen.status,
                        market_value_available=result.checks.market_value.available,
                    )
                },
            )
        return result

    async def raw_decode(self, vin: str) -> DecodeResult:
        """Single decode call, as returned by the provider."""
        return await self._call(vin, ACTION_DECODE)
