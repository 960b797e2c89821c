# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Run the HTTP server.

Commands:
    tiauth serve [--host HOST] [--port PORT]
"""

from __future__ import annotations

import argparse


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the serve command."""
    serve_p = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_p.add_argument("--host", help="Host to bind to (default from TIAUTH_HOST)")
    serve_p.add_argument("--port", type=int, help="Port to bind to (default from TIAUTH_PORT)")
    serve_p.set_defaults(func=cmd_serve)


def cmd_serve(args: argparse.Namespace) -> int:
    """Start uvicorn with the configured app."""
    import uvicorn

    from ...core.logging import configure_logging
    from ...server.config import get_settings

    settings = get_settings()
    host = args.host or settings.host
    port = args.port or settings.port

    configure_logging()
    uvicorn.run(
        "tiauth.server.app:app",
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )
    return 0
