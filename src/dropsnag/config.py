"""YAML settings loading, .env support and environment overrides."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from dropsnag.errors import ConfigError

logger = logging.getLogger(__name__)

API_VERSION = "v1"


class ResySettings(BaseModel):
    api_key: str = ""
    auth_token: str = ""


class EngineSettings(BaseModel):
    """Controls one acquisition run after the wake timer fires."""

    budget_seconds: float = Field(default=180.0, gt=0)
    hedge_requests: int = Field(default=2, ge=1)
    retry_interval_seconds: float = Field(default=0.0, ge=0)  # 0 = tight loop


class SchedulerSettings(BaseModel):
    wake_margin_seconds: float = Field(default=60.0, ge=0)
    max_concurrent_runs: int = Field(default=4, ge=1)


class NotificationSettings(BaseModel):
    webhook_url: str | None = None


class Settings(BaseModel):
    resy: ResySettings = Field(default_factory=ResySettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)


def load_dotenv(env_path: str | Path | None = None) -> None:
    """Load a .env file into os.environ without overriding existing vars."""
    path = Path(env_path) if env_path else Path.cwd() / ".env"
    if not path.exists():
        return
    with open(path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, _, value = line.partition("=")
                key, value = key.strip(), value.strip().strip('"').strip("'")
                if key not in os.environ:
                    os.environ[key] = value
    logger.info("Loaded .env from %s", path)


def _first_env(*names: str) -> str | None:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value.strip()
    return None


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from an optional YAML file, then apply env overrides."""
    data: dict = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a YAML mapping, got {type(data).__name__}")

    try:
        settings = Settings.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid config: {e}") from e

    api_key = _first_env("RESY_API_KEY", "API_KEY")
    if api_key:
        settings.resy.api_key = api_key
    auth_token = _first_env("RESY_AUTH_TOKEN", "AUTH_TOKEN")
    if auth_token:
        settings.resy.auth_token = auth_token
    webhook_url = _first_env("DROPSNAG_WEBHOOK_URL")
    if webhook_url:
        settings.notifications.webhook_url = webhook_url

    return settings
