"""Shared test doubles and payload builders.

Plain classes and functions, importable from conftest.py and test modules.
These are NOT fixtures.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any

from vinreport.config import Settings
from vinreport.mail.mailer import Attachment, MailDeliveryError
from vinreport.rendering.pdf import RenderError
from vinreport.vindecoder.client import (
    ACTION_DECODE,
    ACTION_MARKET_VALUE,
    ACTION_STOLEN_CHECK,
    DecodeResult,
)

TEST_VIN = "WBA3A5C51CF256985"
TEST_EMAIL = "buyer@example.com"
TEST_SECRET = "test-webhook-secret"
FAKE_PDF = b"%PDF-1.4 fake report"

DECODE_BODY: dict[str, Any] = {
    "price": 0.2,
    "price_currency": "EUR",
    "balance": {"API Decode": 41},
    "decode": [
        {"label": "VIN", "value": TEST_VIN},
        {"label": "Make", "value": "BMW"},
        {"label": "Model", "value": "3 Series"},
        {"label": "Model Year", "value": 2012},
        {"label": "Body", "value": "Sedan"},
        {"label": "Fuel Type - Primary", "value": "Gasoline"},
        {"label": "Engine Power (kW)", "value": 180},
        {"label": "Number of Seats", "value": ["5"]},
    ],
}

STOLEN_BODY: dict[str, Any] = {
    "balance": {"API Stolen Check": 9},
    "stolen": [{"code": "EUCARIS", "status": "not-stolen"}],
}

MARKET_VALUE_BODY: dict[str, Any] = {
    "price": 0.5,
    "vehicle": {"make": "BMW", "model": "3 Series"},
    "market_price": {"price_avg": 11500, "price_count": 42},
}


def make_settings(**overrides: Any) -> Settings:
    """Settings with test credentials; email disabled unless overridden."""
    values: dict[str, Any] = {
        "vindecoder_api_key": "test-api-key",
        "vindecoder_secret_key": "test-secret-key",
        "webhook_secret": TEST_SECRET,
        "email_enabled": False,
        "admin_email": "ops@example.com",
        "stage_timeout_seconds": 2.0,
        "render_timeout_seconds": 2.0,
        "pipeline_timeout_seconds": 5.0,
    }
    values.update(overrides)
    return Settings(**values)


def order_payload(
    order_id: str = "order-1001",
    vin: str | None = TEST_VIN,
    email: str | None = TEST_EMAIL,
) -> dict[str, Any]:
    """Paid-order webhook payload in the shop platform's usual shape."""
    custom_fields = []
    if vin is not None:
        custom_fields.append({"title": "Fahrgestellnummer (VIN)", "value": vin})
    order: dict[str, Any] = {
        "id": order_id,
        "number": "10042",
        "status": "PAID",
        "lineItems": [{"sku": "VINREPORT-PREMIUM", "quantity": 1}],
        "customFields": custom_fields,
    }
    if email is not None:
        order["buyerInfo"] = {"email": email, "firstName": "Test"}
    return {"data": {"order": order}}


class FakeDecodeClient:
    """Stands in for DecodeClient; answers from a per-action table."""

    def __init__(self, responses: dict[str, DecodeResult] | None = None) -> None:
        self.responses = {
            ACTION_DECODE: DecodeResult(ok=True, status=200, json=DECODE_BODY),
            ACTION_STOLEN_CHECK: DecodeResult(ok=True, status=200, json=STOLEN_BODY),
            ACTION_MARKET_VALUE: DecodeResult(ok=True, status=200, json=MARKET_VALUE_BODY),
        }
        self.responses.update(responses or {})
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def fetch_action(self, vin: str, action: str) -> DecodeResult:
        with self._lock:
            self.calls.append((vin, action))
        result = self.responses[action]
        if isinstance(result, Exception):
            raise result
        return result

    def actions(self) -> list[str]:
        return [action for _, action in self.calls]


class FakeMailer:
    """Records messages; fails for recipients listed in fail_for."""

    def __init__(self, fail_for: tuple[str, ...] = ()) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail_for = fail_for
        self._lock = threading.Lock()

    def send(
        self,
        to_addr: str,
        subject: str,
        html: str | None,
        text: str,
        attachments: list[Attachment] | None = None,
    ) -> None:
        if to_addr in self.fail_for:
            raise MailDeliveryError("SMTPServerDisconnected: connection lost")
        with self._lock:
            self.sent.append(
                {
                    "to": to_addr,
                    "subject": subject,
                    "html": html,
                    "text": text,
                    "attachments": list(attachments or []),
                }
            )

    def to(self, addr: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m["to"] == addr]


class FakeRenderer:
    """Async renderer returning FAKE_PDF after `failures` failed attempts."""

    def __init__(self, failures: int = 0, delay: float = 0.0) -> None:
        self.failures = failures
        self.delay = delay
        self.calls = 0

    async def render(self, html: str) -> bytes:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.calls <= self.failures:
            raise RenderError("browser crashed")
        return FAKE_PDF
