"""Courier application configuration.

Loads settings from a single YAML file:
  * courier.settings.yaml: non-secret configuration

The path can be overridden with the ``COURIER_SETTINGS`` environment
variable. ``USER_SERVICE`` overrides ``user_service.base_url`` so that the
profile service location can be injected by the deployment.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("courier.settings.yaml")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 8000
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingSettings(BaseModel):
    level: str = "info"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if value.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return value.lower()


class DatabaseSettings(BaseModel):
    path: str = "courier.duckdb"


class UserServiceSettings(BaseModel):
    """Location of the external user-profile service."""
    base_url:        str   = "http://localhost:5000"
    timeout_seconds: float = 3.0


class UploadSettings(BaseModel):
    dir:       str = "uploads"
    max_bytes: int = 10 * 1024 * 1024


class AppSettings(BaseModel):
    server:       ServerSettings      = Field(default_factory=ServerSettings)
    logging:      LoggingSettings     = Field(default_factory=LoggingSettings)
    database:     DatabaseSettings    = Field(default_factory=DatabaseSettings)
    user_service: UserServiceSettings = Field(default_factory=UserServiceSettings)
    uploads:      UploadSettings      = Field(default_factory=UploadSettings)


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    user_service = os.environ.get("USER_SERVICE")
    if user_service:
        data.setdefault("user_service", {})
        data["user_service"]["base_url"] = user_service
        logger.info("user_service.base_url overridden from USER_SERVICE env var")
    return data


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_settings(path: Optional[Path] = None) -> AppSettings:
    """Load settings from YAML (plus env overrides) into an *AppSettings*."""
    if path is None:
        path = Path(os.environ.get("COURIER_SETTINGS", SETTINGS_FILE))

    data = _apply_env_overrides(_load_yaml(path))
    app_settings = AppSettings(**data)
    logger.info(
        "Settings loaded (server=%s:%s, database=%s, user_service=%s)",
        app_settings.server.host,
        app_settings.server.port,
        app_settings.database.path,
        app_settings.user_service.base_url,
    )
    return app_settings


_config: Optional[AppSettings] = None


def get_config() -> AppSettings:
    """Return the process-wide settings, loading them on first use."""
    global _config
    if _config is None:
        _config = load_settings()
    return _config


def reset_config() -> None:
    """Drop the cached settings so the next get_config() reloads them."""
    global _config
    _config = None
