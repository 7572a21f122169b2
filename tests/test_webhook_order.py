"""HTTP tests for POST /webhook/order."""

import logging

import pytest

from helpers import TEST_EMAIL, TEST_SECRET, TEST_VIN, order_payload
from vinreport.observability.logging import JsonFormatter
from vinreport.vindecoder.client import ACTION_DECODE, DecodeResult

ADMIN = "ops@example.com"
AUTH = {"X-Webhook-Secret": TEST_SECRET}


class TestAuth:
    def test_missing_secret_is_rejected_without_side_effects(self, client, decode_client, mailer):
        response = client.post("/webhook/order", json=order_payload())

        assert response.status_code == 401
        assert response.json() == {"success": False, "status": "unauthorized"}
        assert decode_client.calls == []
        assert mailer.sent == []

    def test_wrong_secret_is_rejected(self, client):
        response = client.post(
            "/webhook/order", json=order_payload(), headers={"X-Webhook-Secret": "nope"}
        )
        assert response.status_code == 401

    def test_secret_as_query_parameter(self, client):
        response = client.post(f"/webhook/order?secret={TEST_SECRET}", json=order_payload())
        assert response.status_code == 200
        assert response.json()["status"] == "sent"

    def test_secret_as_bearer_token(self, client):
        response = client.post(
            "/webhook/order",
            json=order_payload(),
            headers={"Authorization": f"Bearer {TEST_SECRET}"},
        )
        assert response.status_code == 200

    def test_auth_disabled_when_secret_not_configured(self, make_client):
        client = make_client(webhook_secret="")
        response = client.post("/webhook/order", json=order_payload())
        assert response.status_code == 200


class TestOutcomes:
    def test_report_sent(self, client, mailer):
        response = client.post("/webhook/order", json=order_payload(), headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "sent"
        assert body["vin"] == TEST_VIN
        assert len(mailer.to(TEST_EMAIL)) == 1

    def test_duplicate_delivery(self, client, mailer):
        client.post("/webhook/order", json=order_payload(), headers=AUTH)
        response = client.post("/webhook/order", json=order_payload(), headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "status": "duplicate_ignored",
            "order_key": "order-1001",
        }
        assert len(mailer.to(TEST_EMAIL)) == 1

    def test_non_json_body_goes_to_manual_review(self, client, mailer):
        response = client.post(
            "/webhook/order",
            content=b"order=1001&vin=missing",
            headers={**AUTH, "Content-Type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "needs_manual_check"
        [alert] = mailer.to(ADMIN)
        assert "order=1001&vin=missing" in alert["text"]

    def test_deeply_nested_body_goes_to_manual_review(self, client, mailer):
        body = '{"wrap": ' * 3000 + "0" + "}" * 3000

        response = client.post(
            "/webhook/order",
            content=body.encode(),
            headers={**AUTH, "Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "needs_manual_check"
        [alert] = mailer.to(ADMIN)
        assert "Payload:" in alert["text"]
        assert mailer.to(TEST_EMAIL) == []

    def test_empty_body_goes_to_manual_review(self, client):
        response = client.post("/webhook/order", content=b"", headers=AUTH)
        assert response.json()["status"] == "needs_manual_check"

    def test_provider_outage_asks_for_retry(self, client, decode_client):
        decode_client.responses[ACTION_DECODE] = DecodeResult(ok=False, status=500, json={})

        response = client.post("/webhook/order", json=order_payload(), headers=AUTH)

        assert response.status_code == 502
        assert response.json()["retryable"] is True


class TestUnexpectedErrors:
    def test_exception_returns_500_and_alerts_with_traceback(self, client, decode_client, mailer):
        decode_client.responses[ACTION_DECODE] = RuntimeError("unexpected provider state")

        response = client.post(
            "/webhook/order",
            json=order_payload(),
            headers={**AUTH, "X-Correlation-ID": "cid-webhook-1"},
        )

        assert response.status_code == 500
        assert response.json() == {"success": False, "status": "failed", "stage": "internal"}
        [alert] = mailer.to(ADMIN)
        assert "Reason: unexpected_error" in alert["text"]
        assert "Correlation ID: cid-webhook-1" in alert["text"]
        assert "Traceback:" in alert["text"]
        assert "unexpected provider state" in alert["text"]

    def test_pipeline_deadline_returns_504(self, make_client, renderer, mailer):
        renderer.delay = 1.0
        client = make_client(pipeline_timeout_seconds=0.1)

        response = client.post("/webhook/order", json=order_payload(), headers=AUTH)

        assert response.status_code == 504
        assert response.json()["stage"] == "timeout"
        assert mailer.to(TEST_EMAIL) == []
        [alert] = mailer.to(ADMIN)
        assert "pipeline_timeout" in alert["text"]


class _LineCollector(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.setFormatter(JsonFormatter())
        self.lines: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.lines.append(self.format(record))


@pytest.fixture
def log_lines(client):
    """Formatted lines from every vinreport logger during the test."""
    collector = _LineCollector()
    loggers = [
        obj
        for name, obj in logging.Logger.manager.loggerDict.items()
        if name.startswith("vinreport") and isinstance(obj, logging.Logger)
    ]
    for logger in loggers:
        logger.addHandler(collector)
    yield collector.lines
    for logger in loggers:
        logger.removeHandler(collector)


class TestLogHygiene:
    def test_buyer_email_never_logged_in_clear(self, client, log_lines):
        response = client.post("/webhook/order", json=order_payload(), headers=AUTH)

        assert response.status_code == 200
        output = "\n".join(log_lines)
        assert log_lines
        assert TEST_EMAIL not in output
        assert "b***@example.com" in output

    def test_manual_review_payload_stays_out_of_logs(self, client, log_lines):
        client.post("/webhook/order", json={"buyer": {"email": TEST_EMAIL}}, headers=AUTH)

        assert TEST_EMAIL not in "\n".join(log_lines)
