"""Tests for the claim authorization engine.

Tests cover:
- Resource origination and duplicate rejection
- The delegation hierarchy rules
- Batch delegation with partial failures
- Concurrent origination and delegation
- Store failures during origination and delegation
"""

from __future__ import annotations

import asyncio
import json

import pytest

from tiauth.auth.engine import (
    REASON_STORE_FAILURE,
    REASON_STRONGER_THAN_WRITER,
    REASON_TARGET_OUTRANKS,
    REASON_UNKNOWN_TARGET,
    ClaimEngine,
)
from tiauth.auth.models import Claim, DelegationTarget, ResourceURI, find_claim
from tiauth.core.exceptions import AuthReject, RejectKind, StorageException

SALT = "0f" * 16
PASSWORD_HASH = "ab" * 32


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def engine(stores):
    return ClaimEngine(stores)


@pytest.fixture
def register(service):
    async def _register(*identity_ids: str) -> None:
        for identity_id in identity_ids:
            await service.register(identity_id, PASSWORD_HASH, SALT)

    return _register


async def level_of(stores, identity_id: str, resource: ResourceURI) -> int | None:
    claim = find_claim(await stores.claims.get(identity_id), resource)
    return None if claim is None else claim.permission


async def grant(engine, writer: str, resource: ResourceURI, target: str, level: int) -> None:
    await engine.delegate(writer, resource, "inst-1", [DelegationTarget(target, level)])


# =============================================================================
# ORIGINATION
# =============================================================================


class TestOriginate:
    async def test_creates_owner_claim(self, engine, stores, register):
        await register("aa")

        resource = await engine.originate("aa", "doc", "inst-1")

        assert resource == ResourceURI("aa", "doc")
        assert await stores.resources.contains("aa--doc")
        claims = await stores.claims.get("aa")
        assert claims == [Claim(resource=resource, instance_id="inst-1", permission=0)]

    async def test_uri_round_trips_to_inputs(self, engine, register):
        await register("ab-cd")

        resource = await engine.originate("ab-cd", "x1", "inst-1")

        parsed = ResourceURI.parse(str(resource))
        assert (parsed.origin, parsed.local_id) == ("ab-cd", "x1")

    async def test_reoriginate_fails_without_mutation(self, engine, stores, register):
        await register("aa")
        await engine.originate("aa", "doc", "inst-1")
        before_claims = await stores.claims.get("aa")
        before_uris = await stores.resources.list_uris()

        with pytest.raises(AuthReject) as exc_info:
            await engine.originate("aa", "doc", "inst-2")

        assert exc_info.value.kind is RejectKind.ALREADY_EXISTS
        assert exc_info.value.public_detail == "aa--doc"
        assert await stores.claims.get("aa") == before_claims
        assert await stores.resources.list_uris() == before_uris

    async def test_rejects_ambiguous_local_id(self, engine, register):
        await register("aa")

        with pytest.raises(AuthReject) as exc_info:
            await engine.originate("aa", "-doc", "inst-1")

        assert exc_info.value.kind is RejectKind.INCORRECT

    async def test_concurrent_origination_has_one_winner(self, engine, stores, register):
        await register("aa")

        results = await asyncio.gather(
            *(engine.originate("aa", "doc", f"inst-{i}") for i in range(5)),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, ResourceURI)]
        losers = [r for r in results if isinstance(r, AuthReject)]
        assert len(winners) == 1
        assert len(losers) == 4
        assert all(r.kind is RejectKind.ALREADY_EXISTS for r in losers)
        assert len(await stores.claims.get("aa")) == 1


# =============================================================================
# SINGLE CLAIM WRITE
# =============================================================================


class TestWriteClaim:
    async def test_upserts(self, engine, stores, register):
        await register("aa")
        resource = ResourceURI("aa", "doc")

        await engine.write_claim("aa", Claim(resource, "i1", 4000))
        await engine.write_claim("aa", Claim(resource, "i2", 3000))

        claims = await stores.claims.get("aa")
        assert claims == [Claim(resource, "i2", 3000)]

    async def test_require_absent_rejects_existing(self, engine, stores, register):
        await register("aa")
        resource = ResourceURI("aa", "doc")
        await engine.write_claim("aa", Claim(resource, "i1", 4000))

        with pytest.raises(AuthReject) as exc_info:
            await engine.write_claim("aa", Claim(resource, "i2", 0), require_absent=True)

        assert exc_info.value.kind is RejectKind.INCORRECT
        assert await level_of(stores, "aa", resource) == 4000

    async def test_unknown_target(self, engine):
        with pytest.raises(AuthReject) as exc_info:
            await engine.write_claim("ee", Claim(ResourceURI("aa", "doc"), "i1", 0))

        assert exc_info.value.kind is RejectKind.NOT_FOUND


# =============================================================================
# DELEGATION
# =============================================================================


class TestDelegate:
    async def test_owner_grants_new_claim(self, engine, stores, register):
        await register("aa", "bb")
        resource = await engine.originate("aa", "doc", "inst-1")

        result = await engine.delegate("aa", resource, "inst-1", [DelegationTarget("bb", 1500)])

        assert result.succeeded == ["bb"]
        assert result.failed == []
        assert not result.partial
        assert await level_of(stores, "bb", resource) == 1500

    async def test_writer_without_claim(self, engine, register):
        await register("aa", "bb", "cc")
        resource = await engine.originate("aa", "doc", "inst-1")

        with pytest.raises(AuthReject) as exc_info:
            await engine.delegate("bb", resource, "inst-1", [DelegationTarget("cc", 5000)])

        assert exc_info.value.kind is RejectKind.NOT_FOUND

    @pytest.mark.parametrize("writer_level", [3000, 3500, 4500, 5000, 6000])
    async def test_weak_writer_has_no_authority(self, engine, stores, register, writer_level):
        await register("aa", "bb", "cc")
        resource = await engine.originate("aa", "doc", "inst-1")
        await grant(engine, "aa", resource, "bb", writer_level)

        with pytest.raises(AuthReject) as exc_info:
            await engine.delegate("bb", resource, "inst-1", [DelegationTarget("cc", 6000)])

        assert exc_info.value.kind is RejectKind.PERMISSION
        assert await level_of(stores, "cc", resource) is None

    async def test_moderator_boundary_has_authority(self, engine, stores, register):
        await register("aa", "bb", "cc")
        resource = await engine.originate("aa", "doc", "inst-1")
        await grant(engine, "aa", resource, "bb", 2999)

        await engine.delegate("bb", resource, "inst-1", [DelegationTarget("cc", 4500)])

        assert await level_of(stores, "cc", resource) == 4500

    async def test_cannot_grant_stronger_than_writer(self, engine, stores, register):
        await register("aa", "bb", "cc")
        resource = await engine.originate("aa", "doc", "inst-1")
        await grant(engine, "aa", resource, "bb", 1000)

        with pytest.raises(AuthReject) as exc_info:
            await engine.delegate("bb", resource, "inst-1", [DelegationTarget("cc", 999)])

        reject = exc_info.value
        assert reject.kind is RejectKind.INCORRECT
        failures = json.loads(reject.public_detail)
        assert failures == [{"identity_id": "cc", "reason": REASON_STRONGER_THAN_WRITER}]
        assert await level_of(stores, "cc", resource) is None

    async def test_equal_level_grant_allowed(self, engine, stores, register):
        await register("aa", "bb", "cc")
        resource = await engine.originate("aa", "doc", "inst-1")
        await grant(engine, "aa", resource, "bb", 1000)

        await grant(engine, "bb", resource, "cc", 1000)

        assert await level_of(stores, "cc", resource) == 1000

    async def test_cannot_change_equal_or_stronger_target(self, engine, stores, register):
        await register("aa", "bb", "cc")
        resource = await engine.originate("aa", "doc", "inst-1")
        await grant(engine, "aa", resource, "bb", 1000)
        await grant(engine, "aa", resource, "cc", 1000)

        with pytest.raises(AuthReject) as exc_info:
            await grant(engine, "bb", resource, "cc", 5000)

        details = exc_info.value.details["invalid_targets"]
        assert details == [{"identity_id": "cc", "reason": REASON_TARGET_OUTRANKS}]
        assert await level_of(stores, "cc", resource) == 1000

    async def test_stronger_writer_downgrades_weaker_target(self, engine, stores, register):
        await register("aa", "bb", "cc")
        resource = await engine.originate("aa", "doc", "inst-1")
        await grant(engine, "aa", resource, "bb", 1000)
        await grant(engine, "aa", resource, "cc", 2500)

        await grant(engine, "bb", resource, "cc", 5000)

        assert await level_of(stores, "cc", resource) == 5000

    async def test_owner_overrides_other_owner(self, engine, stores, register):
        await register("aa", "bb")
        resource = await engine.originate("aa", "doc", "inst-1")
        await grant(engine, "aa", resource, "bb", 0)

        await grant(engine, "aa", resource, "bb", 5000)

        assert await level_of(stores, "bb", resource) == 5000

    async def test_batch_partial_success(self, engine, stores, register):
        await register("aa", "ww", "t1", "t2")
        resource = await engine.originate("aa", "doc", "inst-1")
        await grant(engine, "aa", resource, "ww", 1000)
        await grant(engine, "aa", resource, "t2", 500)

        result = await engine.delegate(
            "ww",
            resource,
            "inst-2",
            [DelegationTarget("t1", 5000), DelegationTarget("t2", 0)],
        )

        assert result.succeeded == ["t1"]
        assert result.partial
        assert [f.identity_id for f in result.failed] == ["t2"]
        assert await level_of(stores, "t1", resource) == 5000
        assert await level_of(stores, "t2", resource) == 500

    async def test_batch_target_outranking_writer(self, engine, stores, register):
        await register("aa", "ww", "t1", "t2")
        resource = await engine.originate("aa", "doc", "inst-1")
        await grant(engine, "aa", resource, "ww", 1000)
        await grant(engine, "aa", resource, "t2", 500)

        result = await engine.delegate(
            "ww",
            resource,
            "inst-2",
            [DelegationTarget("t1", 5000), DelegationTarget("t2", 5000)],
        )

        assert result.succeeded == ["t1"]
        assert [f.to_dict() for f in result.failed] == [{"identity_id": "t2", "reason": REASON_TARGET_OUTRANKS}]
        assert await level_of(stores, "t2", resource) == 500

    async def test_unknown_target_is_per_target_failure(self, engine, stores, register):
        await register("aa", "bb")
        resource = await engine.originate("aa", "doc", "inst-1")

        result = await engine.delegate(
            "aa",
            resource,
            "inst-1",
            [DelegationTarget("bb", 4500), DelegationTarget("ee", 4500)],
        )

        assert result.succeeded == ["bb"]
        assert [f.to_dict() for f in result.failed] == [{"identity_id": "ee", "reason": REASON_UNKNOWN_TARGET}]

    async def test_instance_id_is_written(self, engine, stores, register):
        await register("aa", "bb")
        resource = await engine.originate("aa", "doc", "inst-1")

        await engine.delegate("aa", resource, "inst-9", [DelegationTarget("bb", 4500)])

        claim = find_claim(await stores.claims.get("bb"), resource)
        assert claim.instance_id == "inst-9"

    async def test_rerun_is_idempotent(self, engine, stores, register):
        await register("aa", "bb")
        resource = await engine.originate("aa", "doc", "inst-1")
        targets = [DelegationTarget("bb", 4500)]

        await engine.delegate("aa", resource, "inst-1", targets)
        first = await stores.claims.get("bb")
        await engine.delegate("aa", resource, "inst-1", targets)

        assert await stores.claims.get("bb") == first

    async def test_writer_level_is_reread(self, engine, stores, register):
        await register("aa", "bb", "cc")
        resource = await engine.originate("aa", "doc", "inst-1")
        await grant(engine, "aa", resource, "bb", 1000)
        await grant(engine, "bb", resource, "cc", 4000)

        await grant(engine, "aa", resource, "bb", 4500)

        with pytest.raises(AuthReject) as exc_info:
            await grant(engine, "bb", resource, "cc", 5000)
        assert exc_info.value.kind is RejectKind.PERMISSION

    async def test_concurrent_delegations_keep_one_claim(self, engine, stores, register):
        await register("aa", "bb")
        resource = await engine.originate("aa", "doc", "inst-1")

        await asyncio.gather(
            *(grant(engine, "aa", resource, "bb", level) for level in (4000, 4100, 4200, 4300, 4400))
        )

        claims = [c for c in await stores.claims.get("bb") if c.resource == resource]
        assert len(claims) == 1
        assert claims[0].permission in (4000, 4100, 4200, 4300, 4400)

    async def test_batch_targets_processed_concurrently(self, engine, stores, register):
        targets = [f"t{i}" for i in range(8)]
        await register("aa", *targets)
        resource = await engine.originate("aa", "doc", "inst-1")

        result = await engine.delegate(
            "aa",
            resource,
            "inst-1",
            [DelegationTarget(t, 4500) for t in targets],
        )

        assert sorted(result.succeeded) == sorted(targets)
        for t in targets:
            assert await level_of(stores, t, resource) == 4500


# =============================================================================
# STORE FAILURES
# =============================================================================


def fail_modify_for(monkeypatch, stores, *failing_ids: str) -> None:
    """Make ``claims.modify`` raise for the given identities only."""
    original = stores.claims.modify

    async def modify(identity_id, mutate):
        if identity_id in failing_ids:
            raise StorageException("disk full")
        return await original(identity_id, mutate)

    monkeypatch.setattr(stores.claims, "modify", modify)


class TestStoreFailures:
    async def test_failed_owner_claim_releases_uri(self, engine, stores, register, monkeypatch):
        await register("aa")
        fail_modify_for(monkeypatch, stores, "aa")

        with pytest.raises(AuthReject) as exc_info:
            await engine.originate("aa", "doc", "inst-1")

        assert exc_info.value.kind is RejectKind.IO
        assert "disk full" not in exc_info.value.public_message()
        assert await stores.resources.list_uris() == []
        assert await stores.claims.get("aa") == []

    async def test_origination_succeeds_after_store_recovers(self, engine, stores, register, monkeypatch):
        await register("aa")
        fail_modify_for(monkeypatch, stores, "aa")
        with pytest.raises(AuthReject):
            await engine.originate("aa", "doc", "inst-1")
        monkeypatch.undo()

        resource = await engine.originate("aa", "doc", "inst-1")

        assert await stores.resources.list_uris() == ["aa--doc"]
        assert await level_of(stores, "aa", resource) == 0

    async def test_missing_claim_list_releases_uri(self, engine, stores):
        with pytest.raises(AuthReject) as exc_info:
            await engine.originate("ee", "doc", "inst-1")

        assert exc_info.value.kind is RejectKind.NOT_FOUND
        assert not await stores.resources.contains("ee--doc")

    async def test_store_failure_on_one_target(self, engine, stores, register, monkeypatch):
        await register("aa", "bb", "cc", "dd")
        resource = await engine.originate("aa", "doc", "inst-1")
        fail_modify_for(monkeypatch, stores, "cc")

        result = await engine.delegate(
            "aa",
            resource,
            "inst-1",
            [DelegationTarget("bb", 4500), DelegationTarget("cc", 4500), DelegationTarget("dd", 4000)],
        )

        assert sorted(result.succeeded) == ["bb", "dd"]
        assert [f.to_dict() for f in result.failed] == [{"identity_id": "cc", "reason": REASON_STORE_FAILURE}]
        assert await level_of(stores, "bb", resource) == 4500
        assert await level_of(stores, "cc", resource) is None

    async def test_store_failure_on_every_target(self, engine, stores, register, monkeypatch):
        await register("aa", "bb")
        resource = await engine.originate("aa", "doc", "inst-1")
        fail_modify_for(monkeypatch, stores, "bb")

        with pytest.raises(AuthReject) as exc_info:
            await grant(engine, "aa", resource, "bb", 4500)

        assert exc_info.value.kind is RejectKind.INCORRECT
        assert json.loads(exc_info.value.public_detail) == [{"identity_id": "bb", "reason": REASON_STORE_FAILURE}]
