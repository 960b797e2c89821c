# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Build the configured store backend."""

from __future__ import annotations

import logging

from ..core.config import STORE_BACKENDS, CoreSettings, get_config
from ..core.exceptions import ConfigException
from .base import Stores

logger = logging.getLogger(__name__)


def build_stores(config: CoreSettings | None = None) -> Stores:
    """Create the stores selected by ``store_backend``.

    Raises:
        ConfigException: If the backend name is unknown.
    """
    config = config or get_config()
    backend = config.store_backend.lower()

    if backend == "memory":
        from .memory import memory_stores

        stores = memory_stores()
    elif backend == "files":
        from .files import file_stores

        stores = file_stores(config.store_path)
    elif backend == "postgres":
        from .postgres import postgres_stores

        stores = postgres_stores()
    else:
        raise ConfigException(
            f"Unknown store backend {config.store_backend!r}, expected one of {', '.join(STORE_BACKENDS)}",
            setting="store_backend",
        )

    logger.info("Using %s store backend", backend)
    return stores
