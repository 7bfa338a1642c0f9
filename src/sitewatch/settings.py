"""
Settings for the sitewatch service.

Loads settings from environment variables (prefix SITEWATCH_) and an
optional .env file.
"""
from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="SITEWATCH_",
        env_file=".env",
        extra="ignore",
    )

    # Websites, metrics, aggregators and alerts (loaded at start, saved at exit)
    config_path: str = "./config.json"

    # Control server
    control_host: str = "127.0.0.1"
    control_port: int = Field(default=3456, ge=0, le=65535)

    # Dashboard
    dashboard_enabled: bool = False
    dashboard_host: str = "127.0.0.1"
    dashboard_port: int = Field(default=9060, ge=0, le=65535)
    dashboard_api_key: Optional[str] = None

    # Console output of aggregator snapshots and alerts
    display_enabled: bool = True

    # HTTP checks
    request_timeout: float = Field(default=10.0, gt=0)

    log_level: str = "INFO"
