"""Shared pytest fixtures for vinreport tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from helpers import (  # noqa: E402
    FakeDecodeClient,
    FakeMailer,
    FakeRenderer,
    make_settings,
)
from vinreport.api.factory import create_app  # noqa: E402
from vinreport.api.services import build_services  # noqa: E402
from vinreport.infra.dedupe import InMemoryDedupeStore  # noqa: E402


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep host environment out of Settings.from_env() based tests."""
    for name in (
        "VINDECODER_API_KEY",
        "VINDECODER_SECRET_KEY",
        "WEBHOOK_SECRET",
        "EMAIL_ENABLED",
        "SMTP_HOST",
        "SMTP_USER",
        "SMTP_PASSWORD",
        "MAIL_FROM",
        "ADMIN_EMAIL",
        "DELIVERY_MODE",
        "PUBLIC_BASE_URL",
        "PDF_ENABLED",
        "DEBUG_ECHO_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def decode_client():
    return FakeDecodeClient()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def make_client(tmp_path, decode_client, mailer, renderer):
    """Build a TestClient around fakes. Keyword args override Settings."""

    def _make(**overrides) -> TestClient:
        overrides.setdefault("download_dir", str(tmp_path / "downloads"))
        settings = make_settings(**overrides)
        services = build_services(
            settings,
            decode_client=decode_client,
            mailer=mailer,
            renderer=renderer,
            dedupe_store=InMemoryDedupeStore(),
        )
        return TestClient(create_app(services=services))

    return _make


@pytest.fixture
def client(make_client):
    return make_client()
