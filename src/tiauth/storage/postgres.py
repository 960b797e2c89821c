# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""PostgreSQL store backend.

Every store call runs one transaction on a pooled psycopg2 connection in a
worker thread. Claim-list mutation locks the holder's identity row
(``SELECT ... FOR UPDATE``) so concurrent writers for the same identity are
serialized across processes; primary keys back up resource uniqueness.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from ..auth.models import Claim, IdentityRecord, ResourceURI
from ..core.exceptions import RecordConflictError, RecordNotFoundError, StorageException
from .base import ClaimMutation, Stores
from .db import IntegrityViolation, get_cursor

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = [
    (
        "create identities",
        """
        CREATE TABLE IF NOT EXISTS identities (
            identity_id TEXT PRIMARY KEY CHECK (LENGTH(identity_id) < 1000),
            password_hash TEXT NOT NULL CHECK (LENGTH(password_hash) = 64),
            salt TEXT NOT NULL CHECK (LENGTH(salt) = 32),
            private_key TEXT NOT NULL CHECK (LENGTH(private_key) = 64),
            public_key TEXT NOT NULL CHECK (LENGTH(public_key) = 64)
        )
        """,
    ),
    (
        "create resources",
        """
        CREATE TABLE IF NOT EXISTS resources (
            uri TEXT PRIMARY KEY CHECK (uri = origin || '--' || local_id),
            origin TEXT NOT NULL,
            local_id TEXT NOT NULL
        )
        """,
    ),
    (
        "create claims",
        """
        CREATE TABLE IF NOT EXISTS claims (
            claim_id TEXT PRIMARY KEY CHECK (claim_id = identity_id || '---' || uri),
            identity_id TEXT NOT NULL REFERENCES identities (identity_id),
            uri TEXT NOT NULL REFERENCES resources (uri),
            instance_id TEXT NOT NULL,
            permission INTEGER NOT NULL CHECK (permission BETWEEN 0 AND 65535)
        )
        """,
    ),
    (
        "index claims by holder",
        "CREATE INDEX IF NOT EXISTS claims_identity_id_index ON claims (identity_id)",
    ),
]


def init_schema() -> None:
    """Create the tables if they do not exist yet."""
    with get_cursor() as cur:
        for desc, statement in SCHEMA_STATEMENTS:
            logger.debug("schema: %s", desc)
            cur.execute(statement)
    logger.info("Database schema ready")


def _claim_id(identity_id: str, uri: str) -> str:
    return f"{identity_id}---{uri}"


def _row_to_claim(row: dict[str, Any]) -> Claim:
    try:
        return Claim(
            resource=ResourceURI.parse(row["uri"]),
            instance_id=row["instance_id"],
            permission=row["permission"],
        )
    except ValueError as e:
        raise StorageException(f"Malformed claim row {row.get('uri')!r}: {e}") from e


class PostgresIdentityStore:
    def _get(self, identity_id: str) -> IdentityRecord:
        with get_cursor() as cur:
            cur.execute(
                "SELECT identity_id, password_hash, salt, private_key, public_key "
                "FROM identities WHERE identity_id = %s",
                (identity_id,),
            )
            row = cur.fetchone()
        if row is None:
            raise RecordNotFoundError("identity", identity_id)
        return IdentityRecord.from_dict(dict(row))

    def _exists(self, identity_id: str) -> bool:
        with get_cursor() as cur:
            cur.execute("SELECT 1 FROM identities WHERE identity_id = %s", (identity_id,))
            return cur.fetchone() is not None

    def _create(self, record: IdentityRecord) -> None:
        try:
            with get_cursor() as cur:
                cur.execute(
                    "INSERT INTO identities (identity_id, password_hash, salt, private_key, public_key) "
                    "VALUES (%s, %s, %s, %s, %s)",
                    (
                        record.identity_id,
                        record.password_hash,
                        record.salt,
                        record.private_key,
                        record.public_key,
                    ),
                )
        except IntegrityViolation as e:
            if e.is_unique_violation:
                raise RecordConflictError("identity", record.identity_id) from e
            raise

    def _update_password(self, identity_id: str, password_hash: str, salt: str) -> None:
        with get_cursor() as cur:
            cur.execute(
                "UPDATE identities SET password_hash = %s, salt = %s WHERE identity_id = %s",
                (password_hash, salt, identity_id),
            )
            if cur.rowcount == 0:
                raise RecordNotFoundError("identity", identity_id)

    def _delete(self, identity_id: str) -> None:
        with get_cursor() as cur:
            cur.execute("DELETE FROM claims WHERE identity_id = %s", (identity_id,))
            cur.execute("DELETE FROM identities WHERE identity_id = %s", (identity_id,))

    def _list_ids(self) -> list[str]:
        with get_cursor() as cur:
            cur.execute("SELECT identity_id FROM identities ORDER BY identity_id")
            return [row["identity_id"] for row in cur.fetchall()]

    async def get(self, identity_id: str) -> IdentityRecord:
        return await asyncio.to_thread(self._get, identity_id)

    async def exists(self, identity_id: str) -> bool:
        return await asyncio.to_thread(self._exists, identity_id)

    async def create(self, record: IdentityRecord) -> None:
        await asyncio.to_thread(self._create, record)

    async def update_password(self, identity_id: str, password_hash: str, salt: str) -> None:
        await asyncio.to_thread(self._update_password, identity_id, password_hash, salt)

    async def delete(self, identity_id: str) -> None:
        await asyncio.to_thread(self._delete, identity_id)

    async def list_ids(self) -> list[str]:
        return await asyncio.to_thread(self._list_ids)


class PostgresClaimStore:
    """Claim lists are rows of the ``claims`` table keyed by holder.

    An identity without claims still has an (empty) list; only an unknown
    identity has none.
    """

    @staticmethod
    def _lock_holder(cur: Any, identity_id: str) -> None:
        cur.execute(
            "SELECT identity_id FROM identities WHERE identity_id = %s FOR UPDATE",
            (identity_id,),
        )
        if cur.fetchone() is None:
            raise RecordNotFoundError("claims", identity_id)

    @staticmethod
    def _select(cur: Any, identity_id: str) -> list[Claim]:
        cur.execute(
            "SELECT uri, instance_id, permission FROM claims WHERE identity_id = %s ORDER BY uri",
            (identity_id,),
        )
        return [_row_to_claim(row) for row in cur.fetchall()]

    @staticmethod
    def _write(cur: Any, identity_id: str, old: list[Claim], new: list[Claim]) -> None:
        new_uris = {str(c.resource) for c in new}
        for claim in old:
            uri = str(claim.resource)
            if uri not in new_uris:
                cur.execute("DELETE FROM claims WHERE claim_id = %s", (_claim_id(identity_id, uri),))
        for claim in new:
            uri = str(claim.resource)
            cur.execute(
                "INSERT INTO claims (claim_id, identity_id, uri, instance_id, permission) "
                "VALUES (%s, %s, %s, %s, %s) "
                "ON CONFLICT (claim_id) DO UPDATE SET "
                "instance_id = EXCLUDED.instance_id, permission = EXCLUDED.permission",
                (_claim_id(identity_id, uri), identity_id, uri, claim.instance_id, claim.permission),
            )

    def _get(self, identity_id: str) -> list[Claim]:
        with get_cursor() as cur:
            cur.execute("SELECT 1 FROM identities WHERE identity_id = %s", (identity_id,))
            if cur.fetchone() is None:
                raise RecordNotFoundError("claims", identity_id)
            return self._select(cur, identity_id)

    def _put(self, identity_id: str, claims: list[Claim]) -> None:
        with get_cursor() as cur:
            self._lock_holder(cur, identity_id)
            self._write(cur, identity_id, self._select(cur, identity_id), claims)

    def _modify(self, identity_id: str, mutate: ClaimMutation) -> list[Claim]:
        with get_cursor() as cur:
            self._lock_holder(cur, identity_id)
            current = self._select(cur, identity_id)
            updated = mutate(list(current))
            if updated is None:
                return current
            self._write(cur, identity_id, current, updated)
            return updated

    async def get(self, identity_id: str) -> list[Claim]:
        return await asyncio.to_thread(self._get, identity_id)

    async def put(self, identity_id: str, claims: list[Claim]) -> None:
        await asyncio.to_thread(self._put, identity_id, claims)

    async def modify(self, identity_id: str, mutate: ClaimMutation) -> list[Claim]:
        return await asyncio.to_thread(self._modify, identity_id, mutate)


class PostgresResourceRegistry:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    def _contains(self, uri: str) -> bool:
        with get_cursor() as cur:
            cur.execute("SELECT 1 FROM resources WHERE uri = %s", (uri,))
            return cur.fetchone() is not None

    def _add(self, uri: str) -> None:
        resource = ResourceURI.parse(uri)
        try:
            with get_cursor() as cur:
                cur.execute(
                    "INSERT INTO resources (uri, origin, local_id) VALUES (%s, %s, %s)",
                    (uri, resource.origin, resource.local_id),
                )
        except IntegrityViolation as e:
            if e.is_unique_violation:
                raise RecordConflictError("resource", uri) from e
            raise

    def _remove(self, uri: str) -> None:
        with get_cursor() as cur:
            cur.execute("DELETE FROM resources WHERE uri = %s", (uri,))

    def _list_uris(self) -> list[str]:
        with get_cursor() as cur:
            cur.execute("SELECT uri FROM resources ORDER BY uri")
            return [row["uri"] for row in cur.fetchall()]

    async def contains(self, uri: str) -> bool:
        return await asyncio.to_thread(self._contains, uri)

    async def add(self, uri: str) -> None:
        await asyncio.to_thread(self._add, uri)

    async def remove(self, uri: str) -> None:
        await asyncio.to_thread(self._remove, uri)

    async def list_uris(self) -> list[str]:
        return await asyncio.to_thread(self._list_uris)

    @asynccontextmanager
    async def lock(self) -> AsyncGenerator[None, None]:
        async with self._lock:
            yield


def postgres_stores() -> Stores:
    return Stores(
        identities=PostgresIdentityStore(),
        claims=PostgresClaimStore(),
        resources=PostgresResourceRegistry(),
    )
