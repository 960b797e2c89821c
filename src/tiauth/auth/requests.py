# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Pydantic models for validating incoming requests."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, Field, ValidationError

from ..core.exceptions import AuthReject, RejectKind
from .models import MAX_PERMISSION, DelegationTarget

HEX_DASH_PATTERN = r"^([a-f0-9]{2,6}-)*[a-f0-9]{2,6}$"
MAX_IDENTITY_LENGTH = 1000

IdentityId = Annotated[str, Field(pattern=HEX_DASH_PATTERN, max_length=MAX_IDENTITY_LENGTH)]
PasswordHash = Annotated[str, Field(pattern=r"^[a-f0-9]{64}$")]
Salt = Annotated[str, Field(pattern=r"^[a-f0-9]{32}$")]
Permission = Annotated[int, Field(ge=0, le=MAX_PERMISSION)]
Text = Annotated[str, Field(min_length=1, max_length=MAX_IDENTITY_LENGTH)]


# =============================================================================
# Request Models
# =============================================================================


class RegisterRequest(BaseModel):
    """Register a new identity."""

    identity_id: IdentityId = Field(..., description="Hex-dash identity handle")
    password_hash: PasswordHash = Field(..., description="Client-computed password hash (hex)")
    salt: Salt = Field(..., description="Salt used for the password hash (hex)")


class LoginRequest(BaseModel):
    """Exchange a password hash for a credential."""

    identity_id: IdentityId
    password_hash: PasswordHash


class IdentityQuery(BaseModel):
    """Look up the public data of one identity."""

    identity_id: IdentityId


class OriginateRequest(BaseModel):
    """Originate a resource owned by ``identity_id``."""

    identity_id: IdentityId = Field(..., description="Originating identity")
    local_id: Text = Field(..., description="Resource id local to the origin")
    instance_id: Text = Field(..., description="Opaque instance tag")
    credential: str = Field(..., description="Credential of the originating identity")


class TargetSpec(BaseModel):
    identity_id: IdentityId
    permission: Permission

    def to_target(self) -> DelegationTarget:
        return DelegationTarget(identity_id=self.identity_id, permission=self.permission)


class DelegateRequest(BaseModel):
    """Set claim levels for a batch of target identities."""

    writer: IdentityId = Field(..., description="Identity making the change")
    origin: IdentityId = Field(..., description="Origin part of the resource")
    local_id: Text = Field(..., description="Local part of the resource")
    instance_id: Text = Field(..., description="Opaque instance tag")
    targets: list[TargetSpec] = Field(..., min_length=1, description="Targets and requested levels")
    credential: str = Field(..., description="Credential of the writer")


def parse_request(model: type[BaseModel], data: Any) -> Any:
    """Validate ``data`` against ``model``.

    Raises:
        AuthReject: INCORRECT naming the offending fields.
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) or "body" for err in e.errors()})
        raise AuthReject(
            RejectKind.INCORRECT,
            "request failed validation",
            public_detail=", ".join(fields),
            details={"errors": e.errors(include_url=False, include_input=False)},
        ) from e
