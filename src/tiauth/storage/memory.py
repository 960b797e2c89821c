# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""In-memory store backend, for tests and single-process development."""

from __future__ import annotations

import asyncio
import copy
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from ..auth.models import Claim, IdentityRecord
from ..core.exceptions import RecordConflictError, RecordNotFoundError
from .base import ClaimMutation, Stores
from .locks import KeyedLock


class InMemoryIdentityStore:
    def __init__(self) -> None:
        self._records: dict[str, IdentityRecord] = {}

    async def get(self, identity_id: str) -> IdentityRecord:
        record = self._records.get(identity_id)
        if record is None:
            raise RecordNotFoundError("identity", identity_id)
        return copy.copy(record)

    async def exists(self, identity_id: str) -> bool:
        return identity_id in self._records

    async def create(self, record: IdentityRecord) -> None:
        if record.identity_id in self._records:
            raise RecordConflictError("identity", record.identity_id)
        self._records[record.identity_id] = copy.copy(record)

    async def update_password(self, identity_id: str, password_hash: str, salt: str) -> None:
        record = self._records.get(identity_id)
        if record is None:
            raise RecordNotFoundError("identity", identity_id)
        record.password_hash = password_hash
        record.salt = salt

    async def delete(self, identity_id: str) -> None:
        self._records.pop(identity_id, None)

    async def list_ids(self) -> list[str]:
        return sorted(self._records)


class InMemoryClaimStore:
    def __init__(self) -> None:
        self._claims: dict[str, list[Claim]] = {}
        self._locks = KeyedLock()

    async def get(self, identity_id: str) -> list[Claim]:
        claims = self._claims.get(identity_id)
        if claims is None:
            raise RecordNotFoundError("claims", identity_id)
        return copy.deepcopy(claims)

    async def put(self, identity_id: str, claims: list[Claim]) -> None:
        async with self._locks.hold(identity_id):
            self._claims[identity_id] = copy.deepcopy(claims)

    async def modify(self, identity_id: str, mutate: ClaimMutation) -> list[Claim]:
        async with self._locks.hold(identity_id):
            current = await self.get(identity_id)
            updated = mutate(current)
            if updated is None:
                return current
            # Yield once so concurrent callers really contend for the lock
            await asyncio.sleep(0)
            self._claims[identity_id] = copy.deepcopy(updated)
            return updated


class InMemoryResourceRegistry:
    def __init__(self) -> None:
        self._uris: set[str] = set()
        self._lock = asyncio.Lock()

    async def contains(self, uri: str) -> bool:
        return uri in self._uris

    async def add(self, uri: str) -> None:
        if uri in self._uris:
            raise RecordConflictError("resource", uri)
        self._uris.add(uri)

    async def remove(self, uri: str) -> None:
        self._uris.discard(uri)

    async def list_uris(self) -> list[str]:
        return sorted(self._uris)

    @asynccontextmanager
    async def lock(self) -> AsyncGenerator[None, None]:
        async with self._lock:
            yield


def memory_stores() -> Stores:
    """Fresh, empty in-memory stores."""
    return Stores(
        identities=InMemoryIdentityStore(),
        claims=InMemoryClaimStore(),
        resources=InMemoryResourceRegistry(),
    )
