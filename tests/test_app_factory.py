"""Tests for app factory, public routes and correlation IDs."""

import pytest

from vinreport.api.factory import create_app


class TestPublicRoutes:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_version(self, make_client):
        client = make_client(app_version="1.4.2", git_commit="3f2a9c1")
        response = client.get("/version")
        assert response.json() == {"name": "vinreport", "version": "1.4.2", "commit": "3f2a9c1"}

    def test_docs_not_exposed(self, client):
        assert client.get("/docs").status_code == 404


class TestCorrelationId:
    def test_generated_when_absent(self, client):
        response = client.get("/health")
        assert response.headers["X-Correlation-ID"]

    def test_echoed_when_supplied(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "cid-42"})
        assert response.headers["X-Correlation-ID"] == "cid-42"

    def test_distinct_per_request(self, client):
        first = client.get("/health").headers["X-Correlation-ID"]
        second = client.get("/health").headers["X-Correlation-ID"]
        assert first != second


class TestFailFast:
    def test_missing_provider_credentials_abort_startup(self):
        with pytest.raises(RuntimeError, match="VINDECODER_API_KEY"):
            create_app()

    def test_missing_smtp_config_aborts_startup(self, monkeypatch):
        monkeypatch.setenv("VINDECODER_API_KEY", "k")
        monkeypatch.setenv("VINDECODER_SECRET_KEY", "s")
        with pytest.raises(RuntimeError, match="SMTP_HOST"):
            create_app()

    def test_starts_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("VINDECODER_API_KEY", "k")
        monkeypatch.setenv("VINDECODER_SECRET_KEY", "s")
        monkeypatch.setenv("EMAIL_ENABLED", "false")
        monkeypatch.setenv("DOWNLOAD_DIR", str(tmp_path))

        app = create_app()

        assert app.state.services.settings.email_enabled is False
        assert app.state.services.settings.auth_enabled is False
