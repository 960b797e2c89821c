"""tiauth core - configuration, exceptions and logging."""

from .config import CoreSettings, clear_config_cache, get_config
from .exceptions import (
    AuthReject,
    ConfigException,
    RecordConflictError,
    RecordNotFoundError,
    RejectKind,
    StorageException,
    TiauthException,
)

__all__ = [
    "AuthReject",
    "ConfigException",
    "CoreSettings",
    "RecordConflictError",
    "RecordNotFoundError",
    "RejectKind",
    "StorageException",
    "TiauthException",
    "clear_config_cache",
    "get_config",
]
