"""CollabFlow application configuration.

Loads settings from two YAML files:
  * collabflow.settings.yaml: non-secret configuration
  * collabflow.secrets.yaml: secrets (never committed)

The JWT secret is shared by the HTTP bearer dependency and the realtime
connection gate, so both surfaces agree on token validity.
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

SETTINGS_FILE = Path("collabflow.settings.yaml")
SECRETS_FILE  = Path("collabflow.secrets.yaml")

JWT_SECRET_ENV = "COLLABFLOW_JWT_SECRET"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class JWTSecrets(BaseModel):
    secret_key: str = "change-me-in-production"
    algorithm:  str = "HS256"


class Secrets(BaseModel):
    jwt: JWTSecrets = Field(default_factory=JWTSecrets)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 1045
    allowed_origins: List[str] = Field(default_factory=lambda: ["http://localhost:8080"])


class LoggingSettings(BaseModel):
    level: str = "info"


class DatabaseSettings(BaseModel):
    """Location of the DuckDB file. ``:memory:`` keeps everything in-process."""
    path: str = "collabflow.duckdb"


class ChatSettings(BaseModel):
    history_default_limit:       int  = Field(default=50, ge=1)
    history_max_limit:           int  = Field(default=200, ge=1)
    max_content_length:          int  = Field(default=4000, ge=1)
    require_membership_to_join:  bool = False

    @field_validator("history_max_limit")
    @classmethod
    def _max_not_below_default(cls, v: int, info) -> int:
        default = info.data.get("history_default_limit", 1)
        if v < default:
            raise ValueError("history_max_limit must be >= history_default_limit")
        return v


class AppConfig(BaseModel):
    server:   ServerSettings   = Field(default_factory=ServerSettings)
    logging:  LoggingSettings  = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    chat:     ChatSettings     = Field(default_factory=ChatSettings)
    secrets:  Secrets          = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Path resolution
# ---------------------------------------------------------------------------


def _resolve_database_path(config: AppConfig, settings_path: Path) -> None:
    """Anchor a relative database path at the settings file's directory."""
    raw = config.database.path
    if raw == ":memory:" or Path(raw).is_absolute():
        return
    config.database.path = str(settings_path.parent.resolve() / raw)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(
    settings_path: Optional[Path] = None,
    secrets_path: Optional[Path] = None,
) -> AppConfig:
    """Load and merge settings + secrets into a single *AppConfig* object."""
    settings_path = Path(settings_path) if settings_path else SETTINGS_FILE
    secrets_path  = Path(secrets_path) if secrets_path else settings_path.with_name(SECRETS_FILE.name)

    settings_data = _load_yaml(settings_path)
    secrets_data  = _load_yaml(secrets_path)

    # Merge: secrets live under the "secrets" key in AppConfig
    settings_data["secrets"] = secrets_data

    config = AppConfig(**settings_data)
    _resolve_database_path(config, settings_path)

    env_secret = os.environ.get(JWT_SECRET_ENV)
    if env_secret:
        config.secrets.jwt.secret_key = env_secret
        logger.info("JWT secret taken from %s", JWT_SECRET_ENV)

    logger.info(
        "Settings loaded (server=%s:%s, database=%s, history_limit=%d/%d)",
        config.server.host,
        config.server.port,
        config.database.path,
        config.chat.history_default_limit,
        config.chat.history_max_limit,
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: AppConfig) -> None:
    """Replace the process-wide configuration (tests, embedding apps)."""
    global _config
    _config = config


def reset_config() -> None:
    """Forget the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None
