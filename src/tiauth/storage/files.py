# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""JSON-file store backend.

Layout under the store root::

    users/<identity_id>.json    identity record
    claims/<identity_id>.json   {"claims": [...]}
    resources.json              {"resources": [...]}

Files are replaced atomically (write to a temp file, then rename). Blocking
file IO runs in worker threads; per-record asyncio locks serialize writers
within the process.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import tempfile
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from ..auth.models import Claim, IdentityRecord, claims_from_list, claims_to_list
from ..core.exceptions import RecordConflictError, RecordNotFoundError, StorageException
from .base import ClaimMutation, Stores
from .locks import KeyedLock

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def _record_path(directory: Path, identity_id: str) -> Path:
    if not _SAFE_NAME.match(identity_id) or ".." in identity_id:
        raise StorageException(f"Identity id not usable as a file name: {identity_id!r}")
    return directory / f"{identity_id}.json"


def _read_json(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise StorageException(f"Corrupt record file {path}: {e}") from e


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class FileIdentityStore:
    def __init__(self, root: Path) -> None:
        self.directory = root / "users"
        self._locks = KeyedLock()

    def _load(self, identity_id: str) -> IdentityRecord:
        path = _record_path(self.directory, identity_id)
        try:
            data = _read_json(path)
        except FileNotFoundError:
            raise RecordNotFoundError("identity", identity_id) from None
        except OSError as e:
            raise StorageException(f"Error reading identity {identity_id}: {e}") from e
        try:
            return IdentityRecord.from_dict(data)
        except (KeyError, TypeError) as e:
            raise StorageException(f"Malformed identity record {identity_id}: {e}") from e

    def _create(self, record: IdentityRecord) -> None:
        path = _record_path(self.directory, record.identity_id)
        if path.exists():
            raise RecordConflictError("identity", record.identity_id)
        _write_json(path, record.to_dict())

    async def get(self, identity_id: str) -> IdentityRecord:
        return await asyncio.to_thread(self._load, identity_id)

    async def exists(self, identity_id: str) -> bool:
        path = _record_path(self.directory, identity_id)
        return await asyncio.to_thread(path.exists)

    async def create(self, record: IdentityRecord) -> None:
        async with self._locks.hold(record.identity_id):
            await asyncio.to_thread(self._create, record)

    async def update_password(self, identity_id: str, password_hash: str, salt: str) -> None:
        async with self._locks.hold(identity_id):
            record = await asyncio.to_thread(self._load, identity_id)
            record.password_hash = password_hash
            record.salt = salt
            path = _record_path(self.directory, identity_id)
            await asyncio.to_thread(_write_json, path, record.to_dict())

    async def delete(self, identity_id: str) -> None:
        path = _record_path(self.directory, identity_id)
        async with self._locks.hold(identity_id):
            try:
                await asyncio.to_thread(path.unlink, missing_ok=True)
            except OSError as e:
                raise StorageException(f"Error deleting identity {identity_id}: {e}") from e

    async def list_ids(self) -> list[str]:
        def _scan() -> list[str]:
            if not self.directory.exists():
                return []
            return sorted(p.stem for p in self.directory.glob("*.json"))

        return await asyncio.to_thread(_scan)


class FileClaimStore:
    def __init__(self, root: Path) -> None:
        self.directory = root / "claims"
        self._locks = KeyedLock()

    def _load(self, identity_id: str) -> list[Claim]:
        path = _record_path(self.directory, identity_id)
        try:
            data = _read_json(path)
        except FileNotFoundError:
            raise RecordNotFoundError("claims", identity_id) from None
        except OSError as e:
            raise StorageException(f"Error reading claims of {identity_id}: {e}") from e
        try:
            return claims_from_list(data["claims"])
        except (KeyError, TypeError, ValueError) as e:
            raise StorageException(f"Malformed claims record {identity_id}: {e}") from e

    def _store(self, identity_id: str, claims: list[Claim]) -> None:
        path = _record_path(self.directory, identity_id)
        try:
            _write_json(path, {"claims": claims_to_list(claims)})
        except OSError as e:
            raise StorageException(f"Error writing claims of {identity_id}: {e}") from e

    async def get(self, identity_id: str) -> list[Claim]:
        return await asyncio.to_thread(self._load, identity_id)

    async def put(self, identity_id: str, claims: list[Claim]) -> None:
        async with self._locks.hold(identity_id):
            await asyncio.to_thread(self._store, identity_id, claims)

    async def modify(self, identity_id: str, mutate: ClaimMutation) -> list[Claim]:
        async with self._locks.hold(identity_id):
            current = await asyncio.to_thread(self._load, identity_id)
            updated = mutate(current)
            if updated is None:
                return current
            await asyncio.to_thread(self._store, identity_id, updated)
            logger.debug("Wrote %d claims for %s", len(updated), identity_id)
            return updated


class FileResourceRegistry:
    def __init__(self, root: Path) -> None:
        self.path = root / "resources.json"
        self._lock = asyncio.Lock()

    def _load(self) -> list[str]:
        try:
            data = _read_json(self.path)
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageException(f"Error reading resources: {e}") from e
        try:
            return list(data["resources"])
        except (KeyError, TypeError) as e:
            raise StorageException(f"Malformed resources file: {e}") from e

    def _add(self, uri: str) -> None:
        uris = self._load()
        if uri in uris:
            raise RecordConflictError("resource", uri)
        uris.append(uri)
        try:
            _write_json(self.path, {"resources": uris})
        except OSError as e:
            raise StorageException(f"Error writing resources: {e}") from e

    def _remove(self, uri: str) -> None:
        uris = self._load()
        if uri not in uris:
            return
        uris.remove(uri)
        try:
            _write_json(self.path, {"resources": uris})
        except OSError as e:
            raise StorageException(f"Error writing resources: {e}") from e

    async def contains(self, uri: str) -> bool:
        return uri in await asyncio.to_thread(self._load)

    async def add(self, uri: str) -> None:
        await asyncio.to_thread(self._add, uri)

    async def remove(self, uri: str) -> None:
        await asyncio.to_thread(self._remove, uri)

    async def list_uris(self) -> list[str]:
        return sorted(await asyncio.to_thread(self._load))

    @asynccontextmanager
    async def lock(self) -> AsyncGenerator[None, None]:
        async with self._lock:
            yield


def file_stores(root: str | Path) -> Stores:
    """Stores rooted at ``root``; directories are created on first write."""
    root = Path(root)
    return Stores(
        identities=FileIdentityStore(root),
        claims=FileClaimStore(root),
        resources=FileResourceRegistry(root),
    )
