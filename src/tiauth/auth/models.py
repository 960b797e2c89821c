# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Data model for identities, resources and claims.

Permission levels are unsigned 16-bit integers where a lower value is more
powerful. The standard tiers are:

- 0 is full ownership and allows removing other owners.
- 1-999 is general admin access: 500 admin
- 1000-1999 is general managing access: 1500 manager
- 2000-2999 is general write access with moderation powers: 2500 moderator
- 3000-3999 is general write access without moderation. From 3000 up it is
  not possible to modify the claims of other identities: 3500 write access
- 4000-4999 is general read access with limited powers: 4500 read access
- 5000 is read-only. Anything above 5000 is treated as read-only as well.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

RESOURCE_SEPARATOR = "--"

MAX_PERMISSION = 0xFFFF

# Levels at or above this cannot modify other identities' claims
MODERATION_LIMIT = 3000


class PermissionTier(Enum):
    """Named permission tiers with their (lowest, highest) level bounds."""

    OWNER = (0, 0)
    ADMIN = (1, 999)
    MANAGER = (1000, 1999)
    MODERATOR = (2000, 2999)
    WRITER = (3000, 3999)
    READER = (4000, 4999)
    READ_ONLY = (5000, MAX_PERMISSION)

    def __init__(self, lowest: int, highest: int):
        self.lowest = lowest
        self.highest = highest

    @classmethod
    def of(cls, level: int) -> PermissionTier:
        """Classify a permission level. Unknown high values are READ_ONLY."""
        validate_permission(level)
        for tier in cls:
            if tier.lowest <= level <= tier.highest:
                return tier
        return cls.READ_ONLY  # pragma: no cover - tiers cover the full range


# Conventional level for each tier
STANDARD_LEVELS = {
    PermissionTier.OWNER: 0,
    PermissionTier.ADMIN: 500,
    PermissionTier.MANAGER: 1500,
    PermissionTier.MODERATOR: 2500,
    PermissionTier.WRITER: 3500,
    PermissionTier.READER: 4500,
    PermissionTier.READ_ONLY: 5000,
}


def validate_permission(level: int) -> int:
    """Check that ``level`` fits in an unsigned 16-bit integer."""
    if isinstance(level, bool) or not isinstance(level, int):
        raise ValueError(f"Permission level must be an integer, got {level!r}")
    if not 0 <= level <= MAX_PERMISSION:
        raise ValueError(f"Permission level out of range 0-{MAX_PERMISSION}: {level}")
    return level


def can_modify_claims(level: int) -> bool:
    """Whether a holder of ``level`` may change other identities' claims."""
    return level < MODERATION_LIMIT


@dataclass(frozen=True)
class ResourceURI:
    """Identifier of a resource, derived from its origin identity and local id.

    Only constructible from its parts. ``str(uri)`` is the joined form and
    ``ResourceURI.parse`` goes back through the constructor, so the string
    form always splits back into the same parts.
    """

    origin: str
    local_id: str

    def __post_init__(self) -> None:
        if not self.origin or not self.local_id:
            raise ValueError("Resource origin and local id must be non-empty")
        for part in (self.origin, self.local_id):
            if RESOURCE_SEPARATOR in part:
                raise ValueError(f"Resource part may not contain {RESOURCE_SEPARATOR!r}: {part!r}")
        # A dash touching the separator would make the joined form ambiguous
        if self.origin.endswith("-") or self.local_id.startswith("-"):
            raise ValueError("Resource parts may not have a dash adjacent to the separator")

    def __str__(self) -> str:
        return f"{self.origin}{RESOURCE_SEPARATOR}{self.local_id}"

    @classmethod
    def parse(cls, uri: str) -> ResourceURI:
        """Split a joined URI back into its parts."""
        parts = uri.split(RESOURCE_SEPARATOR)
        if len(parts) != 2:
            raise ValueError(f"Malformed resource URI: {uri!r}")
        return cls(origin=parts[0], local_id=parts[1])


@dataclass
class Claim:
    """One identity's permission on one resource.

    The identity holding the claim is implicit: claims live on the holder's
    claim list.
    """

    resource: ResourceURI
    instance_id: str
    permission: int

    def __post_init__(self) -> None:
        validate_permission(self.permission)

    @property
    def tier(self) -> PermissionTier:
        return PermissionTier.of(self.permission)

    def to_dict(self) -> dict[str, Any]:
        return {
            "origin": self.resource.origin,
            "local_id": self.resource.local_id,
            "uri": str(self.resource),
            "instance_id": self.instance_id,
            "permission": self.permission,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Claim:
        resource = ResourceURI(origin=data["origin"], local_id=data["local_id"])
        if "uri" in data and data["uri"] != str(resource):
            raise ValueError(f"Claim uri {data['uri']!r} does not match its parts")
        return cls(
            resource=resource,
            instance_id=data["instance_id"],
            permission=data["permission"],
        )


def find_claim(claims: list[Claim], resource: ResourceURI) -> Claim | None:
    """Return the claim on ``resource`` in a claim list, if any."""
    for claim in claims:
        if claim.resource == resource:
            return claim
    return None


def upsert_claim(claims: list[Claim], claim: Claim) -> list[Claim]:
    """Return a new claim list with ``claim`` inserted or replacing the old one."""
    updated = [c for c in claims if c.resource != claim.resource]
    updated.append(claim)
    return updated


def claims_to_list(claims: list[Claim]) -> list[dict[str, Any]]:
    return [claim.to_dict() for claim in claims]


def claims_from_list(data: list[dict[str, Any]]) -> list[Claim]:
    return [Claim.from_dict(item) for item in data]


@dataclass
class IdentityRecord:
    """A registered identity as held by the identity store.

    Keys are hex encodings of the raw 32-byte Ed25519 private and public keys.
    """

    identity_id: str
    password_hash: str
    salt: str
    private_key: str
    public_key: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IdentityRecord:
        return cls(
            identity_id=data["identity_id"],
            password_hash=data["password_hash"],
            salt=data["salt"],
            private_key=data["private_key"],
            public_key=data["public_key"],
        )

    def public_view(self) -> dict[str, str]:
        """Fields safe to hand out: never the hash or the private key."""
        return {
            "identity_id": self.identity_id,
            "salt": self.salt,
            "public_key": self.public_key,
        }

    def __repr__(self) -> str:
        return f"IdentityRecord(identity_id={self.identity_id!r}, public_key={self.public_key!r})"


# =============================================================================
# DELEGATION
# =============================================================================


@dataclass(frozen=True)
class DelegationTarget:
    """A requested permission for one target identity."""

    identity_id: str
    permission: int

    def __post_init__(self) -> None:
        validate_permission(self.permission)


@dataclass(frozen=True)
class TargetFailure:
    """Why one target of a delegation was not written."""

    identity_id: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"identity_id": self.identity_id, "reason": self.reason}


@dataclass
class DelegationResult:
    """Outcome of a batch delegation that wrote at least one target."""

    resource: ResourceURI
    succeeded: list[str] = field(default_factory=list)
    failed: list[TargetFailure] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource": str(self.resource),
            "succeeded": list(self.succeeded),
            "invalid_targets": [f.to_dict() for f in self.failed],
        }
