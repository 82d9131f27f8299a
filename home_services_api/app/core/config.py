"""
Configuration management.

``Settings`` is a plain dataclass populated from environment variables
with defaults for every field, so the application starts without any
configuration at all (email is then simply disabled).  Override values
through the environment or a process manager; there is no settings file.
"""

import os
from dataclasses import dataclass


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Home Services API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = _env_flag("DEBUG")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")

    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    # Customers stay signed in for a month, matching the web client.
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 30)))
    algorithm: str = os.getenv("ALGORITHM", "HS256")

    # Path to the SQLite database file.  Relative paths are resolved
    # against the project root by ``core.db``.
    database_url: str = os.getenv("DATABASE_URL", "home_services.db")

    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))
    cors_origins: str = os.getenv("CORS_ORIGINS", "*")

    # Outbound email.  When ``smtp_host`` is empty no mail is sent and the
    # dispatcher only logs what it would have delivered.
    smtp_host: str = os.getenv("SMTP_HOST", "")
    smtp_port: int = int(os.getenv("SMTP_PORT", "587"))
    smtp_username: str = os.getenv("SMTP_USERNAME", "")
    smtp_password: str = os.getenv("SMTP_PASSWORD", "")
    smtp_use_tls: bool = _env_flag("SMTP_USE_TLS", "true")
    email_from: str = os.getenv("EMAIL_FROM", "RightBridge <no-reply@rightbridge.local>")
    support_email: str = os.getenv("SUPPORT_EMAIL", "support@rightbridge.com")
    admin_email: str = os.getenv("ADMIN_EMAIL", "admin@rightbridge.com")

    # Send the ``newBooking`` template to a provider when an admin assigns
    # them.  Off by default; the dashboard event is always emitted.
    notify_provider_on_assignment: bool = _env_flag("NOTIFY_PROVIDER_ON_ASSIGNMENT")

    # Upper bound on simultaneous live-dashboard subscribers.
    dashboard_max_subscribers: int = int(os.getenv("DASHBOARD_MAX_SUBSCRIBERS", "50"))
    # Seconds a single subscriber send may take before it is dropped.
    dashboard_send_timeout: float = float(os.getenv("DASHBOARD_SEND_TIMEOUT", "5"))

    @property
    def cors_origin_list(self) -> list[str]:
        return [item.strip() for item in self.cors_origins.split(",") if item.strip()]


# Read the environment once; set variables before importing this module.
settings = Settings()
