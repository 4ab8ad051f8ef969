"""Centralised application configuration using pydantic-settings.

All environment variables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# src/numbercall/config.py  ->  parent x3  ->  project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class ServerConfig(BaseModel):
    """HTTP / websocket listener configuration."""

    host: str = "0.0.0.0"  # nosec B104
    port: int = Field(default=5000, ge=1, le=65535)
    cors_origins: list[str] = ["*"]
    cors_methods: list[str] = ["GET", "POST"]
    storage_secret: SecretStr = SecretStr("dev-secret-change-me")
    reload: bool = False


class SyncConfig(BaseModel):
    """Broadcast and disconnect-recovery behaviour."""

    recovery_window_seconds: float = Field(default=120.0, gt=0)
    event_log_size: int = Field(default=256, ge=1)
    delete_by_id: bool = True
    relay_repeat_messages: bool = False


class AnnouncerConfig(BaseModel):
    """Per-client speech defaults."""

    interval_minutes: int = Field(default=5, ge=1)
    start_muted: bool = False
    voice_lang: str = "en-US"
    voice_rate: float = Field(default=1.0, gt=0, le=10)


class LogConfig(BaseModel):
    """Log file location and console verbosity."""

    log_dir: Path = Path("logs")
    console_level: str = "INFO"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Application settings with automatic .env loading and type validation.

    Environment variables use double-underscore delimiter for nesting:
    ``SERVER__PORT``, ``SYNC__RECOVERY_WINDOW_SECONDS``,
    ``ANNOUNCER__INTERVAL_MINUTES``, etc.

    The bare ``PORT`` variable set by most hosting platforms is honoured
    when ``SERVER__PORT`` is not set.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    server: ServerConfig = ServerConfig()
    sync: SyncConfig = SyncConfig()
    announcer: AnnouncerConfig = AnnouncerConfig()
    log: LogConfig = LogConfig()

    @model_validator(mode="after")
    def _apply_platform_port(self) -> Settings:
        """Fall back to ``PORT`` when no nested port was configured."""
        if "port" in self.server.model_fields_set:
            return self
        platform_port = os.environ.get("PORT")
        if platform_port:
            self.server = ServerConfig.model_validate(
                {**self.server.model_dump(), "port": platform_port}
            )
        return self


# ---------------------------------------------------------------------------
# Singleton access
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    return settings
