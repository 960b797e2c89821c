# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Server configuration using pydantic-settings."""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from ..core.config import CoreSettings

logger = logging.getLogger(__name__)


def get_package_version() -> str:
    """Installed package version, or a dev fallback when running from source."""
    try:
        return version("tiauth")
    except PackageNotFoundError:
        return "0.0.0-dev"


class ServerSettings(CoreSettings):
    """Configuration for the tiauth HTTP server.

    Inherits core settings (store backend, database, credentials, logging)
    and adds HTTP settings. Configured via environment variables with the
    TIAUTH_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="TIAUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0", description="Host to bind to")  # nosec B104
    port: int = Field(default=3031, description="Port to bind to")

    allowed_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins",
    )

    homepage_url: str = Field(
        default="https://www.tiptenbrink.nl",
        description="Where requests for / are redirected",
    )

    server_version: str = Field(default_factory=get_package_version, description="Server version")


# Global settings instance - lazy loaded
_settings: ServerSettings | None = None


def get_settings() -> ServerSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = ServerSettings()
    return _settings


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    global _settings
    _settings = None
