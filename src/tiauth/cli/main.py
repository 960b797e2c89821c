# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""
tiauth CLI - claim-based authorization service.

Commands:
  tiauth serve                  Run the HTTP server
  tiauth schema init            Create the PostgreSQL tables
  tiauth identities list        List identities and their public keys
  tiauth import-files <dir>     Copy a JSON-file store into the configured backend
"""

from __future__ import annotations

import argparse
import sys

from .commands import COMMAND_MODULES


def app() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tiauth",
        description="Claim-based authorization service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tiauth serve --port 3031                Run the server
  tiauth schema init                      Create database tables
  tiauth identities list -o text          Show registered identities
  TIAUTH_STORE_BACKEND=postgres tiauth import-files ./resources
        """,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    for module in COMMAND_MODULES:
        module.register(subparsers)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    from ..core.logging import configure_logging

    parser = app()
    args = parser.parse_args(argv)

    if args.verbose:
        configure_logging(level="DEBUG", json_format=False)
    elif args.command != "serve":
        configure_logging(json_format=False)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
