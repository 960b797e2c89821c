# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Starlette ASGI application for the tiauth HTTP server."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from ..auth.service import AuthService
from ..core.logging import configure_logging, correlation_context
from ..storage.factory import build_stores
from .config import get_settings
from .endpoints import (
    alive_endpoint,
    get_auth_service,
    login_endpoint,
    modify_claims_endpoint,
    new_claim_endpoint,
    register_endpoint,
    root_endpoint,
    set_auth_service,
    user_salt_endpoint,
    user_verify_endpoint,
)

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Scopes a correlation ID around each request.

    Uses the caller's X-Request-ID when given and echoes it back.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        with correlation_context(request.headers.get(REQUEST_ID_HEADER)) as cid:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = cid
            return response


@asynccontextmanager
async def lifespan(app: Starlette):
    """Application lifespan handler.

    Builds the configured stores unless a service was installed beforehand.
    """
    settings = get_settings()
    configure_logging()
    logger.info("Starting tiauth server on %s:%s", settings.host, settings.port)

    owned = get_auth_service() is None
    if owned:
        set_auth_service(AuthService(build_stores(settings)))

    yield

    if owned:
        service = get_auth_service()
        if service is not None:
            await service.close()
        set_auth_service(None)
    logger.info("tiauth server shutting down")


def create_app() -> Starlette:
    """Create the Starlette ASGI application."""
    settings = get_settings()

    API_V1 = "/api/v1"

    routes = [
        Route("/", root_endpoint, methods=["GET"]),
        Route(f"{API_V1}/alive", alive_endpoint, methods=["GET"]),
        Route(f"{API_V1}/register", register_endpoint, methods=["POST"]),
        Route(f"{API_V1}/user_salt", user_salt_endpoint, methods=["GET"]),
        Route(f"{API_V1}/user_verify", user_verify_endpoint, methods=["GET"]),
        Route(f"{API_V1}/login", login_endpoint, methods=["POST"]),
        Route(f"{API_V1}/new_claim", new_claim_endpoint, methods=["POST"]),
        Route(f"{API_V1}/modify_claims", modify_claims_endpoint, methods=["POST"]),
    ]

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type"],
        ),
        Middleware(CorrelationMiddleware),
    ]

    return Starlette(
        routes=routes,
        middleware=middleware,
        lifespan=lifespan,
    )


# Global app instance for uvicorn
app = create_app()


def run() -> None:
    """Run the server using uvicorn."""
    import uvicorn

    settings = get_settings()

    logger.info("Starting tiauth HTTP server on %s:%s", settings.host, settings.port)

    uvicorn.run(
        "tiauth.server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
