# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Identity inspection commands.

Usage:
    tiauth identities list [-o json|text]

Only public data is shown: identity ids and public keys.
"""

from __future__ import annotations

import argparse
import asyncio

from ...core.exceptions import TiauthException
from ...storage.base import Stores
from ..output import output_error, output_result


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register identities subcommands."""
    ident_p = subparsers.add_parser("identities", help="Inspect registered identities")
    ident_sub = ident_p.add_subparsers(dest="identities_command", required=True)

    list_p = ident_sub.add_parser("list", help="List identities with their public keys")
    list_p.add_argument("-o", "--output", choices=["json", "text"], default="json", help="Output format")
    list_p.set_defaults(func=cmd_identities_list)


async def list_identities(stores: Stores) -> list[dict[str, str]]:
    """Public view of every identity, ordered by id."""
    rows = []
    for identity_id in await stores.identities.list_ids():
        record = await stores.identities.get(identity_id)
        rows.append({"identity_id": record.identity_id, "public_key": record.public_key})
    return rows


def cmd_identities_list(args: argparse.Namespace) -> int:
    from ...storage.factory import build_stores

    async def _run() -> list[dict[str, str]]:
        stores = build_stores()
        try:
            return await list_identities(stores)
        finally:
            await stores.close()

    try:
        rows = asyncio.run(_run())
    except TiauthException as e:
        output_error(e.message)
        return 1
    output_result(rows, args.output)
    return 0
