# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Claim authorization engine.

Enforces the permission hierarchy when resources are originated and when a
writer delegates levels on a resource to other identities. Callers verify
the writer's credential before calling in; the engine trusts only the
writer's stored claim, never a level supplied with the request.

Atomicity comes from the stores: origination holds the resource registry
lock across check-and-add, and each target's claim list is changed through
``ClaimStore.modify``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING

from ..core.exceptions import (
    AuthReject,
    RecordNotFoundError,
    RejectKind,
    StorageException,
    reject_from_storage,
)
from .models import (
    Claim,
    DelegationResult,
    DelegationTarget,
    ResourceURI,
    TargetFailure,
    can_modify_claims,
    find_claim,
    upsert_claim,
)

if TYPE_CHECKING:
    from ..storage.base import Stores

logger = logging.getLogger(__name__)

OWNER_LEVEL = 0

REASON_STRONGER_THAN_WRITER = "target requested stronger permission than writer holds"
REASON_TARGET_OUTRANKS = "target already holds equal-or-greater permission"
REASON_UNKNOWN_TARGET = "target identity does not exist"
REASON_STORE_FAILURE = "claim store failure"


def _may_overwrite(writer_level: int, existing: Claim | None) -> bool:
    if existing is None:
        return True
    if writer_level == OWNER_LEVEL:
        return True
    return writer_level < existing.permission


class ClaimEngine:
    """Originates resources and applies claim delegations."""

    def __init__(self, stores: Stores):
        self.stores = stores

    async def originate(self, writer_id: str, local_id: str, instance_id: str) -> ResourceURI:
        """Register a new resource and make ``writer_id`` its owner.

        Raises:
            AuthReject: INCORRECT for an unusable local id, ALREADY_EXISTS if
                the resource was originated before (nothing is changed then).
                A failed owner claim write unregisters the uri again.
        """
        try:
            resource = ResourceURI(origin=writer_id, local_id=local_id)
        except ValueError as e:
            raise AuthReject(RejectKind.INCORRECT, "invalid resource id", details={"cause": str(e)}) from e
        uri = str(resource)

        async with self.stores.resources.lock():
            try:
                if await self.stores.resources.contains(uri):
                    raise AuthReject(RejectKind.ALREADY_EXISTS, "resource already exists", public_detail=uri)
                await self.stores.resources.add(uri)
            except StorageException as e:
                raise reject_from_storage(e) from e

            owner_claim = Claim(resource=resource, instance_id=instance_id, permission=OWNER_LEVEL)
            try:
                await self.write_claim(writer_id, owner_claim)
            except Exception:
                # Never leave a uri registered without its owner claim
                await self._release(uri)
                raise

        logger.info("Originated resource %s", uri)
        return resource

    async def _release(self, uri: str) -> None:
        try:
            await self.stores.resources.remove(uri)
        except StorageException as e:
            logger.error("Could not release resource %s after failed origination: %s", uri, e)

    async def write_claim(self, target_id: str, claim: Claim, require_absent: bool = False) -> Claim:
        """Insert or replace one claim on ``target_id``'s claim list.

        Bypasses the delegation guard; only origination uses it. With
        ``require_absent`` an existing claim on the same resource is rejected
        and nothing is written.
        """

        def mutate(claims: list[Claim]) -> list[Claim]:
            if require_absent and find_claim(claims, claim.resource) is not None:
                raise AuthReject(
                    RejectKind.INCORRECT,
                    "claim already present",
                    public_detail=str(claim.resource),
                )
            return upsert_claim(claims, claim)

        try:
            await self.stores.claims.modify(target_id, mutate)
        except StorageException as e:
            raise reject_from_storage(e, "claim list does not exist") from e
        return claim

    async def writer_claim(self, writer_id: str, resource: ResourceURI) -> Claim:
        """The writer's stored claim on ``resource``.

        Raises:
            AuthReject: NOT_FOUND if the writer holds no claim on it.
        """
        try:
            claims = await self.stores.claims.get(writer_id)
        except StorageException as e:
            raise reject_from_storage(e, "writer has no claim list") from e
        claim = find_claim(claims, resource)
        if claim is None:
            raise AuthReject(
                RejectKind.NOT_FOUND,
                "writer holds no claim on resource",
                public_detail=str(resource),
            )
        return claim

    async def delegate(
        self,
        writer_id: str,
        resource: ResourceURI,
        instance_id: str,
        targets: list[DelegationTarget],
    ) -> DelegationResult:
        """Set the level of each target on ``resource``.

        Targets are processed independently; failures are collected. The
        call fails as a whole only when no target succeeds.

        Raises:
            AuthReject: NOT_FOUND when the writer holds no claim on the
                resource, PERMISSION when the writer's level is too weak to
                change other identities' claims, INCORRECT when every target
                failed.
        """
        writer = await self.writer_claim(writer_id, resource)
        writer_level = writer.permission
        if not can_modify_claims(writer_level):
            raise AuthReject(
                RejectKind.PERMISSION,
                "writer may not modify claims of other identities",
                details={"writer": writer_id, "level": writer_level},
            )

        failed: list[TargetFailure] = []
        valid: list[DelegationTarget] = []
        for target in targets:
            if target.permission < writer_level:
                failed.append(TargetFailure(target.identity_id, REASON_STRONGER_THAN_WRITER))
            else:
                valid.append(target)

        outcomes = await asyncio.gather(
            *(self._apply(writer_level, resource, instance_id, target) for target in valid)
        )

        succeeded: list[str] = []
        for target, failure in zip(valid, outcomes):
            if failure is None:
                succeeded.append(target.identity_id)
            else:
                failed.append(failure)

        if not succeeded:
            failures = [f.to_dict() for f in failed]
            logger.info("Delegation on %s by %s failed for all %d targets", resource, writer_id, len(targets))
            raise AuthReject(
                RejectKind.INCORRECT,
                "no target could be updated",
                public_detail=json.dumps(failures),
                details={"invalid_targets": failures},
            )

        logger.info(
            "Delegation on %s by %s: %d succeeded, %d failed",
            resource,
            writer_id,
            len(succeeded),
            len(failed),
        )
        return DelegationResult(resource=resource, succeeded=succeeded, failed=failed)

    async def _apply(
        self,
        writer_level: int,
        resource: ResourceURI,
        instance_id: str,
        target: DelegationTarget,
    ) -> TargetFailure | None:
        """Check and write one target atomically. Returns the failure, if any."""
        denied = False

        def mutate(claims: list[Claim]) -> list[Claim] | None:
            nonlocal denied
            if not _may_overwrite(writer_level, find_claim(claims, resource)):
                denied = True
                return None
            claim = Claim(resource=resource, instance_id=instance_id, permission=target.permission)
            return upsert_claim(claims, claim)

        try:
            await self.stores.claims.modify(target.identity_id, mutate)
        except StorageException as e:
            if isinstance(e, RecordNotFoundError):
                return TargetFailure(target.identity_id, REASON_UNKNOWN_TARGET)
            logger.error("Claim update for %s failed: %s", target.identity_id, e)
            return TargetFailure(target.identity_id, REASON_STORE_FAILURE)

        if denied:
            return TargetFailure(target.identity_id, REASON_TARGET_OUTRANKS)
        return None
