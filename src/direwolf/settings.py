# === NAVMAP v1 ===
# {
#   "module": "direwolf.settings",
#   "purpose": "Pydantic settings for transports, logging, and session defaults",
#   "sections": [
#     {"id": "transportsettings", "name": "TransportSettings", "anchor": "class-transportsettings", "kind": "class"},
#     {"id": "loggingsettings", "name": "LoggingSettings", "anchor": "class-loggingsettings", "kind": "class"},
#     {"id": "direwolfsettings", "name": "DirewolfSettings", "anchor": "class-direwolfsettings", "kind": "class"},
#     {"id": "get-settings", "name": "get_settings", "anchor": "function-get-settings", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Configuration for sessions and their transports.

Settings are read once from ``DIREWOLF_*`` environment variables (nested
fields use ``__``, e.g. ``DIREWOLF_TRANSPORT__HTTP2=true``) and cached for the
process. Sessions take a snapshot of the settings when they are created;
changing the environment afterwards requires :func:`reset_settings` and a new
session.
"""

from __future__ import annotations

import logging
import threading
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .network.policy import (
    DIAL_TIMEOUT,
    HTTP2_ENABLED,
    IDLE_CONNECTION_TIMEOUT,
    MAX_CONNECTIONS,
    MAX_IDLE_CONNECTIONS,
    TLS_VERIFY_ENABLED,
    TRUST_ENV,
    USER_AGENT_TEMPLATE,
)

__all__ = [
    "TransportSettings",
    "LoggingSettings",
    "DirewolfSettings",
    "default_user_agent",
    "package_version",
    "get_settings",
    "reset_settings",
]


def package_version() -> str:
    """Return the installed distribution version of direwolf."""
    try:
        return version("direwolf")
    except PackageNotFoundError:  # pragma: no cover - source checkout
        return "0+unknown"


def default_user_agent() -> str:
    """Return the User-Agent advertised by new sessions."""
    return USER_AGENT_TEMPLATE.format(version=package_version())


class TransportSettings(BaseModel):
    """Connection pool and TLS settings for the HTTPX clients of a session."""

    model_config = ConfigDict(frozen=True, validate_assignment=False)

    connect_timeout: float = Field(
        default=DIAL_TIMEOUT,
        gt=0.0,
        le=300.0,
        description="Upper bound for establishing a connection, in seconds",
    )
    max_connections: int = Field(
        default=MAX_CONNECTIONS,
        ge=1,
        le=4096,
        description="Max concurrent connections per client",
    )
    max_idle_connections: int = Field(
        default=MAX_IDLE_CONNECTIONS,
        ge=0,
        le=4096,
        description="Idle connections kept for reuse",
    )
    idle_timeout: float = Field(
        default=IDLE_CONNECTION_TIMEOUT,
        ge=0.0,
        le=3600.0,
        description="Idle connection expiry in seconds",
    )
    http2: bool = Field(default=HTTP2_ENABLED, description="Enable HTTP/2 support")
    verify: bool = Field(default=TLS_VERIFY_ENABLED, description="Verify TLS certificates")
    trust_env: bool = Field(
        default=TRUST_ENV,
        description="Honor HTTP(S)_PROXY and NO_PROXY when no proxy is selected",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True, validate_assignment=False)

    level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    emit_json_logs: bool = Field(
        default=False,
        description="Emit JSON-formatted logs",
        validation_alias=AliasChoices("emit_json_logs", "json"),
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Normalize and validate logging level."""
        upper = str(v).upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {sorted(valid_levels)}, got '{v}'")
        return upper

    def level_int(self) -> int:
        """Convert level string to logging module integer."""
        return logging.getLevelName(self.level)


class DirewolfSettings(BaseSettings):
    """Process-wide defaults applied to new sessions."""

    model_config = SettingsConfigDict(
        env_prefix="DIREWOLF_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    user_agent: str = Field(
        default_factory=default_user_agent,
        description="User-Agent header installed on new sessions",
    )
    timeout: float = Field(
        default=0.0,
        description=(
            "Session timeout in seconds: > 0 limits every request, < 0 disables "
            "the limit, 0 falls back to the 30 second default"
        ),
    )
    transport: TransportSettings = Field(default_factory=TransportSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


_settings: Optional[DirewolfSettings] = None
_settings_lock = threading.Lock()


def get_settings() -> DirewolfSettings:
    """Return the cached settings, reading the environment on first use."""
    global _settings

    if _settings is not None:
        return _settings
    with _settings_lock:
        if _settings is None:
            _settings = DirewolfSettings()
        return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next :func:`get_settings` re-reads the environment."""
    global _settings

    with _settings_lock:
        _settings = None
