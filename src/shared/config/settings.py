"""Environment-driven settings for the contact service."""

import os
from datetime import timedelta
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr
from dotenv import load_dotenv


class Settings(BaseModel):
    """Service configuration, validated once at startup."""
    model_config = ConfigDict(frozen=True)

    port: int = 5000
    environment: str = "development"
    log_level: str = "INFO"
    frontend_url: str = "http://localhost:3000"

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_secure: bool = False  # implicit TLS (port 465) instead of STARTTLS
    smtp_email: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_timeout: float = 30.0
    smtp_verify_on_startup: bool = True

    sender_name: str = "Portfolio Contact Form"
    recipient_email: EmailStr = "contact@example.com"
    subject_prefix: str = "Portfolio Contact: "

    rate_limit_window_minutes: int = 15
    rate_limit_max: int = 5
    trust_proxy: bool = False

    @property
    def rate_limit_window(self) -> timedelta:
        return timedelta(minutes=self.rate_limit_window_minutes)

    @property
    def smtp_configured(self) -> bool:
        """True when SMTP credentials are present."""
        return bool(self.smtp_email and self.smtp_password)


# Environment variable -> Settings field
_ENV_FIELDS = {
    "PORT": "port",
    "ENVIRONMENT": "environment",
    "LOG_LEVEL": "log_level",
    "FRONTEND_URL": "frontend_url",
    "SMTP_HOST": "smtp_host",
    "SMTP_PORT": "smtp_port",
    "SMTP_SECURE": "smtp_secure",
    "SMTP_EMAIL": "smtp_email",
    "SMTP_PASSWORD": "smtp_password",
    "SMTP_TIMEOUT": "smtp_timeout",
    "SMTP_VERIFY_ON_STARTUP": "smtp_verify_on_startup",
    "SENDER_NAME": "sender_name",
    "RECIPIENT_EMAIL": "recipient_email",
    "SUBJECT_PREFIX": "subject_prefix",
    "RATE_LIMIT_WINDOW_MINUTES": "rate_limit_window_minutes",
    "RATE_LIMIT_MAX": "rate_limit_max",
    "TRUST_PROXY": "trust_proxy",
}


def load_settings(environ=None) -> Settings:
    """
    Build Settings from environment variables.

    Variables from a local .env file are loaded first (without overriding
    variables already set). Empty values are treated as unset so the
    defaults apply.

    Args:
        environ: Mapping to read instead of os.environ (used by tests)

    Raises:
        pydantic.ValidationError: If a variable holds a malformed value
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    values = {}
    for env_name, field_name in _ENV_FIELDS.items():
        raw = environ.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        values[field_name] = raw.strip() if field_name != "subject_prefix" else raw

    return Settings(**values)
