# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Authorization service facade.

Wires the stores into the registration service, the credential issuer and
verifier, and the claim engine. Privileged operations verify the caller's
credential for the writer before the engine is invoked.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ..core.exceptions import AuthReject, RejectKind
from .credentials import CredentialIssuer, CredentialVerifier, IssuedCredential
from .engine import ClaimEngine
from .models import DelegationResult, DelegationTarget, IdentityRecord, ResourceURI
from .registration import RegistrationService

if TYPE_CHECKING:
    from ..storage.base import Stores

logger = logging.getLogger(__name__)


class AuthService:
    """Entry point for every operation the service offers."""

    def __init__(
        self,
        stores: Stores,
        issuer: str | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.stores = stores
        issuer_kwargs: dict[str, Any] = {"issuer": issuer}
        if clock is not None:
            issuer_kwargs["clock"] = clock
        self.registration = RegistrationService(stores)
        self.issuer = CredentialIssuer(stores, **issuer_kwargs)
        self.verifier = CredentialVerifier(stores)
        self.engine = ClaimEngine(stores)

    async def register(self, identity_id: str, password_hash: str, salt: str) -> IdentityRecord:
        return await self.registration.register(identity_id, password_hash, salt)

    async def salt(self, identity_id: str) -> str:
        return await self.registration.salt(identity_id)

    async def public_key(self, identity_id: str) -> str:
        return await self.registration.public_key(identity_id)

    async def rotate_password(self, identity_id: str, old_hash: str, new_hash: str, new_salt: str) -> None:
        await self.registration.rotate_password(identity_id, old_hash, new_hash, new_salt)

    async def login(self, identity_id: str, password_hash: str) -> IssuedCredential:
        return await self.issuer.issue(identity_id, password_hash)

    async def originate(
        self,
        writer_id: str,
        credential: str,
        local_id: str,
        instance_id: str,
    ) -> ResourceURI:
        await self.verifier.verify(writer_id, credential)
        return await self.engine.originate(writer_id, local_id, instance_id)

    async def delegate(
        self,
        writer_id: str,
        credential: str,
        resource: ResourceURI | str,
        instance_id: str,
        targets: list[DelegationTarget],
    ) -> DelegationResult:
        await self.verifier.verify(writer_id, credential)
        if isinstance(resource, str):
            try:
                resource = ResourceURI.parse(resource)
            except ValueError as e:
                raise AuthReject(RejectKind.INCORRECT, "invalid resource", details={"cause": str(e)}) from e
        return await self.engine.delegate(writer_id, resource, instance_id, targets)

    async def close(self) -> None:
        await self.stores.close()
