from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Endpoint definitions (JSON or YAML)
    endpoints_file: str = "endpoints.json"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"

    # Background refresh (0 = only refresh on request)
    refresh_interval_seconds: int = 0

    # Failure notifications via email (disabled without an API key)
    resend_api_key: str = ""
    notify_from: str = ""
    notify_to: str = ""
    notify_api_url: str = "https://api.resend.com/emails"
    notify_subject: str = "Endpoint health check failures"


settings = Settings()
