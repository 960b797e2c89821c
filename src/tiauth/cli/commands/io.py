# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Copy records between store backends.

Usage:
    tiauth import-files <dir>

Reads a JSON-file store rooted at <dir> and writes its identities,
resources and claim lists into the configured backend. Records that already
exist in the target are skipped.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from ...core.exceptions import RecordConflictError, RecordNotFoundError, TiauthException
from ...storage.base import Stores
from ..output import output_error, output_result

logger = logging.getLogger(__name__)


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the import-files command."""
    import_p = subparsers.add_parser("import-files", help="Import a JSON-file store")
    import_p.add_argument("directory", type=Path, help="Root directory of the file store")
    import_p.set_defaults(func=cmd_import_files)


@dataclass
class ImportReport:
    identities: int = 0
    resources: int = 0
    claim_lists: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "identities": self.identities,
            "resources": self.resources,
            "claim_lists": self.claim_lists,
            "skipped": self.skipped,
        }


async def copy_stores(source: Stores, target: Stores) -> ImportReport:
    """Copy every record from ``source`` into ``target``.

    Resources go in before claims, since claims refer to them. Claim lists
    are copied only for identities created by this run.
    """
    report = ImportReport()
    created: list[str] = []

    for identity_id in await source.identities.list_ids():
        record = await source.identities.get(identity_id)
        try:
            await target.identities.create(record)
            created.append(identity_id)
            report.identities += 1
        except RecordConflictError:
            logger.warning("Identity %s already exists, skipping", identity_id)
            report.skipped += 1

    for uri in await source.resources.list_uris():
        try:
            await target.resources.add(uri)
            report.resources += 1
        except RecordConflictError:
            logger.warning("Resource %s already exists, skipping", uri)
            report.skipped += 1

    for identity_id in created:
        try:
            claims = await source.claims.get(identity_id)
        except RecordNotFoundError:
            claims = []
        await target.claims.put(identity_id, claims)
        report.claim_lists += 1

    return report


def cmd_import_files(args: argparse.Namespace) -> int:
    from ...storage.factory import build_stores
    from ...storage.files import file_stores

    if not args.directory.is_dir():
        output_error(f"Not a directory: {args.directory}")
        return 1

    async def _run() -> ImportReport:
        source = file_stores(args.directory)
        target = build_stores()
        try:
            return await copy_stores(source, target)
        finally:
            await target.close()

    try:
        report = asyncio.run(_run())
    except TiauthException as e:
        output_error(e.message)
        return 1
    output_result(report.to_dict())
    return 0
