"""Environment configuration.

All settings are read once, at app startup. Missing credentials raise
RuntimeError there instead of failing on the first webhook.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from typing import Literal

DeliveryMode = Literal["attachment", "link"]

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise RuntimeError(f"{name} must be a boolean (true/false), got {raw!r}")


def _env_number(name: str, default: float, cast=float):
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise RuntimeError(f"{name} must be numeric, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the fulfillment service."""

    vindecoder_api_key: str
    vindecoder_secret_key: str
    vindecoder_base_url: str = "https://api.vindecoder.eu"
    vindecoder_api_version: str = "3.2"
    vindecoder_timeout_seconds: float = 10.0

    webhook_secret: str = ""

    email_enabled: bool = True
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    mail_from: str = ""
    mail_from_name: str = "VIN Report"
    admin_email: str = ""

    pdf_enabled: bool = True
    delivery_mode: DeliveryMode = "attachment"
    public_base_url: str = ""
    download_dir: str = field(
        default_factory=lambda: os.path.join(tempfile.gettempdir(), "vinreport-downloads")
    )
    download_ttl_seconds: int = 7 * 24 * 3600

    dedupe_ttl_seconds: int = 24 * 3600
    stage_timeout_seconds: float = 20.0
    render_timeout_seconds: float = 25.0
    pipeline_timeout_seconds: float = 28.0
    alert_payload_max_chars: int = 20000

    debug_echo_enabled: bool = False
    app_version: str = "0.1.0"
    git_commit: str = "unknown"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check mandatory values for the enabled features.

        Raises:
            RuntimeError: If a mandatory value is missing or invalid.
        """
        missing: list[str] = []
        if not self.vindecoder_api_key:
            missing.append("VINDECODER_API_KEY")
        if not self.vindecoder_secret_key:
            missing.append("VINDECODER_SECRET_KEY")
        if self.email_enabled:
            for env_name, value in (
                ("SMTP_HOST", self.smtp_host),
                ("SMTP_USER", self.smtp_user),
                ("SMTP_PASSWORD", self.smtp_password),
                ("MAIL_FROM", self.mail_from),
                ("ADMIN_EMAIL", self.admin_email),
            ):
                if not value:
                    missing.append(env_name)
        if self.delivery_mode not in ("attachment", "link"):
            raise RuntimeError(
                f"DELIVERY_MODE must be 'attachment' or 'link', got {self.delivery_mode!r}"
            )
        if self.delivery_mode == "link" and not self.public_base_url:
            missing.append("PUBLIC_BASE_URL")
        if missing:
            raise RuntimeError(f"Missing required configuration: {', '.join(missing)}")

    @property
    def auth_enabled(self) -> bool:
        """False when no shared webhook secret is configured (operator opt-out)."""
        return bool(self.webhook_secret)

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables.

        Raises:
            RuntimeError: If mandatory credentials are missing.
        """
        download_dir = _env_str("DOWNLOAD_DIR")
        extra: dict = {"download_dir": download_dir} if download_dir else {}
        return cls(
            vindecoder_api_key=_env_str("VINDECODER_API_KEY"),
            vindecoder_secret_key=_env_str("VINDECODER_SECRET_KEY"),
            vindecoder_base_url=_env_str("VINDECODER_BASE_URL", "https://api.vindecoder.eu").rstrip("/"),
            vindecoder_api_version=_env_str("VINDECODER_API_VERSION", "3.2"),
            vindecoder_timeout_seconds=_env_number("VINDECODER_TIMEOUT_SECONDS", 10.0),
            webhook_secret=_env_str("WEBHOOK_SECRET"),
            email_enabled=_env_bool("EMAIL_ENABLED", True),
            smtp_host=_env_str("SMTP_HOST"),
            smtp_port=_env_number("SMTP_PORT", 587, int),
            smtp_user=_env_str("SMTP_USER"),
            smtp_password=os.environ.get("SMTP_PASSWORD", ""),
            mail_from=_env_str("MAIL_FROM"),
            mail_from_name=_env_str("MAIL_FROM_NAME", "VIN Report"),
            admin_email=_env_str("ADMIN_EMAIL"),
            pdf_enabled=_env_bool("PDF_ENABLED", True),
            delivery_mode=_env_str("DELIVERY_MODE", "attachment").lower(),  # type: ignore[arg-type]
            public_base_url=_env_str("PUBLIC_BASE_URL").rstrip("/"),
            download_ttl_seconds=_env_number("DOWNLOAD_TTL_SECONDS", 7 * 24 * 3600, int),
            dedupe_ttl_seconds=_env_number("DEDUPE_TTL_SECONDS", 24 * 3600, int),
            stage_timeout_seconds=_env_number("STAGE_TIMEOUT_SECONDS", 20.0),
            render_timeout_seconds=_env_number("RENDER_TIMEOUT_SECONDS", 25.0),
            pipeline_timeout_seconds=_env_number("PIPELINE_TIMEOUT_SECONDS", 28.0),
            alert_payload_max_chars=_env_number("ALERT_PAYLOAD_MAX_CHARS", 20000, int),
            debug_echo_enabled=_env_bool("DEBUG_ECHO_ENABLED", False),
            app_version=_env_str("APP_VERSION", "0.1.0"),
            git_commit=_env_str("GIT_COMMIT", "unknown"),
            **extra,
        )
