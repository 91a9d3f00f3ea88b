from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Storage (SQLite file shared by the endpoint registry and the sample store)
    db_path: str = "data/uptime.db"

    # Optional YAML seed file: endpoints: [{url: ..., alias: ...}]
    endpoints_file: str = "endpoints.yaml"

    # Scheduler
    scheduler_enabled: bool = True
    poll_interval_seconds: int = 60
    probe_timeout_ms: int = 10_000
    probe_workers: int = 8  # max concurrent probes within one sweep

    # Uptime windows
    hourly_buckets: int = 24
    daily_buckets: int = 30

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"


settings = Settings()
