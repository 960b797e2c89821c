"""Core configuration - centralized config for the tiauth package.

All environment-based configuration should flow through this module.
This provides a single source of truth and consistent defaults.

Usage:
    from tiauth.core.config import get_config
    config = get_config()

    # Access settings
    backend = config.store_backend
    log_level = config.log_level
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

STORE_BACKENDS = ("memory", "files", "postgres")


class CoreSettings(BaseSettings):
    """Core configuration settings for tiauth.

    Settings can be configured via environment variables with the
    TIAUTH_ prefix (e.g. TIAUTH_STORE_BACKEND=postgres).
    """

    model_config = SettingsConfigDict(
        env_prefix="TIAUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # STORE SETTINGS
    # ==========================================================================

    store_backend: str = Field(
        default="files",
        description="Record store backend: 'memory', 'files' or 'postgres'",
    )
    store_path: str = Field(
        default="resources",
        description="Root directory for the 'files' backend",
    )

    # ==========================================================================
    # DATABASE SETTINGS (postgres backend)
    # ==========================================================================

    db_host: str = Field(default="localhost", description="Database host")
    db_port: int = Field(default=5432, description="Database port")
    db_name: str = Field(default="tiauth", description="Database name")
    db_user: str = Field(default="tiauth", description="Database user")
    db_password: str = Field(default="", description="Database password")

    # Connection pool settings
    db_pool_min: int = Field(default=1, description="Minimum pool connections")
    db_pool_max: int = Field(default=10, description="Maximum pool connections")

    # ==========================================================================
    # CREDENTIAL SETTINGS
    # ==========================================================================

    credential_issuer: str = Field(
        default="auth.tipten.nl",
        description="Issuer tag written into the 'iss' field of credentials",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
    )

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def connection_params(self) -> dict:
        """Get database connection parameters dict."""
        return {
            "host": self.db_host,
            "port": self.db_port,
            "dbname": self.db_name,
            "user": self.db_user,
            "password": self.db_password,
        }

    @property
    def pool_config(self) -> dict:
        """Get connection pool configuration."""
        return {
            "minconn": self.db_pool_min,
            "maxconn": self.db_pool_max,
        }


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: CoreSettings | None = None


def get_config() -> CoreSettings:
    """Get the global configuration instance.

    Returns:
        The singleton CoreSettings instance.
    """
    global _config
    if _config is None:
        _config = CoreSettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
