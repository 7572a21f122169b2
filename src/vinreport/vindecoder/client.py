"""Thin wrapper around the vindecoder.eu HTTP API.

Purpose:
- Build authenticated request URLs (control sum per request).
- Return a uniform DecodeResult; transport errors never raise.
- Never log API keys, control sums or full response bodies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import requests

from vinreport.domain.extraction import normalize_vin
from vinreport.infra.hashing import control_sum
from vinreport.observability.logging import get_logger
from vinreport.observability.redaction import prefix, safe_log_context

logger = get_logger(__name__)

ACTION_DECODE = "decode"
ACTION_STOLEN_CHECK = "stolen-check"
ACTION_MARKET_VALUE = "vehicle-market-value"
ACTIONS = frozenset({ACTION_DECODE, ACTION_STOLEN_CHECK, ACTION_MARKET_VALUE})

DEFAULT_BASE_URL = "https://api.vindecoder.eu"
DEFAULT_API_VERSION = "3.2"
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of one provider call.

    ok is False on network failure (status 0) or non-2xx status.
    json is the parsed body, or {} when the body is not a JSON object.
    """

    ok: bool
    status: int
    json: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def unavailable(cls, status: int = 0) -> DecodeResult:
        return cls(ok=False, status=status, json={})


def _parse_body(response: requests.Response) -> dict[str, Any]:
    """Parse a JSON object body. Anything else degrades to {}."""
    text = response.text or ""
    if not text.strip().startswith("{"):
        return {}
    try:
        parsed = response.json()
    except ValueError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


class DecodeClient:
    """Client for decode, stolen-check and market-value lookups.

    Usage:
        client = DecodeClient(api_key="...", secret_key="...")
        result = client.fetch_action("WBAVA12345AB67890", "decode")
        if result.ok and "decode" in result.json:
            ...
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the client.

        Raises:
            RuntimeError: If api_key or secret_key is empty.
        """
        if not api_key or not secret_key:
            raise RuntimeError(
                "vindecoder credentials not provided. "
                "Set VINDECODER_API_KEY and VINDECODER_SECRET_KEY."
            )
        self._api_key = api_key
        self._secret_key = secret_key
        self._base_url = base_url.rstrip("/")
        self._api_version = api_version
        self._timeout = timeout
        self._session = session or requests.Session()

    def build_url(self, vin: str, action: str) -> str:
        """Build the request URL for an action on a sanitized VIN.

        Raises:
            ValueError: If action is not a known provider action.
        """
        if action not in ACTIONS:
            raise ValueError(f"unknown vindecoder action: {action}")
        clean_vin = normalize_vin(vin)
        checksum = control_sum(clean_vin, action, self._api_key, self._secret_key)
        return (
            f"{self._base_url}/{self._api_version}/{self._api_key}/"
            f"{checksum}/{action}/{clean_vin}.json"
        )

    def fetch_action(self, vin: str, action: str) -> DecodeResult:
        """Call the provider for one action.

        Args:
            vin: VIN as received; sanitized before use.
            action: One of decode, stolen-check, vehicle-market-value.

        Returns:
            DecodeResult. Never raises for network or HTTP errors.
        """
        url = self.build_url(vin, action)
        log_ctx = safe_log_context(action=action, vin_prefix=prefix(normalize_vin(vin)))

        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as e:
            logger.warning(
                "vindecoder request failed",
                extra={"extra_fields": {**log_ctx, **safe_log_context(error_type=type(e).__name__)}},
            )
            return DecodeResult.unavailable()

        body = _parse_body(response)
        ok = 200 <= response.status_code < 300
        level_fn = logger.info if ok else logger.warning
        level_fn(
            "vindecoder response received",
            extra={
                "extra_fields": {
                    **log_ctx,
                    **safe_log_context(
                        status=response.status_code,
                        json_body=bool(body),
                        keys=",".join(sorted(body)),
                    ),
                }
            },
        )
        return DecodeResult(ok=ok, status=response.status_code, json=body)
