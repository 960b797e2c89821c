# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Store contracts used by the authorization services.

The services only talk to these protocols. Backends raise the storage
exceptions from ``tiauth.core.exceptions``; the services translate them into
rejections.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Protocol

from ..auth.models import Claim, IdentityRecord

# Receives the current claim list, returns the list to store or None to
# leave it unchanged.
ClaimMutation = Callable[[list[Claim]], "list[Claim] | None"]


class IdentityStore(Protocol):
    """Registered identities with their password hash, salt and keypair."""

    async def get(self, identity_id: str) -> IdentityRecord:
        """Raises RecordNotFoundError for unknown identities."""
        ...

    async def exists(self, identity_id: str) -> bool: ...

    async def create(self, record: IdentityRecord) -> None:
        """Raises RecordConflictError when the id is taken."""
        ...

    async def update_password(self, identity_id: str, password_hash: str, salt: str) -> None: ...

    async def delete(self, identity_id: str) -> None:
        """Remove an identity. Unknown ids are ignored."""
        ...

    async def list_ids(self) -> list[str]: ...


class ClaimStore(Protocol):
    """Per-identity claim lists (claims the identity holds as a target)."""

    async def get(self, identity_id: str) -> list[Claim]:
        """Raises RecordNotFoundError when the identity has no claim list."""
        ...

    async def put(self, identity_id: str, claims: list[Claim]) -> None:
        """Replace the identity's whole claim list."""
        ...

    async def modify(self, identity_id: str, mutate: ClaimMutation) -> list[Claim]:
        """Atomically read, mutate and write one identity's claim list.

        No other ``modify`` or ``put`` for the same identity interleaves.
        Returns the stored list after the call.
        """
        ...


class ResourceRegistry(Protocol):
    """The set of originated resource URIs."""

    async def contains(self, uri: str) -> bool: ...

    async def add(self, uri: str) -> None:
        """Raises RecordConflictError when the uri is already registered."""
        ...

    async def remove(self, uri: str) -> None:
        """Unregister a uri. Unknown uris are ignored."""
        ...

    async def list_uris(self) -> list[str]: ...

    def lock(self) -> AbstractAsyncContextManager[None]:
        """Hold while checking and adding, to make the pair atomic."""
        ...


@dataclass
class Stores:
    """The three stores a service needs, passed around as one unit."""

    identities: IdentityStore
    claims: ClaimStore
    resources: ResourceRegistry

    async def close(self) -> None:
        for store in (self.identities, self.claims, self.resources):
            close = getattr(store, "close", None)
            if close is not None:
                await close()
