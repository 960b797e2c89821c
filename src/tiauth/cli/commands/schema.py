# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Database schema commands.

Usage:
    tiauth schema init
"""

from __future__ import annotations

import argparse

from ...core.exceptions import StorageException
from ..output import output_error


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register schema subcommands."""
    schema_p = subparsers.add_parser("schema", help="PostgreSQL schema management")
    schema_sub = schema_p.add_subparsers(dest="schema_command", required=True)

    init_p = schema_sub.add_parser("init", help="Create tables if missing")
    init_p.set_defaults(func=cmd_schema_init)


def cmd_schema_init(_args: argparse.Namespace) -> int:
    """Create the identities, resources and claims tables."""
    from ...storage.db import close_pool
    from ...storage.postgres import init_schema

    try:
        init_schema()
    except StorageException as e:
        output_error(e.message)
        return 1
    finally:
        close_pool()
    print("Schema initialized.")
    return 0
