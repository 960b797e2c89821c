# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Signed credentials: issuing on login and verifying on privileged calls.

A credential is a compact JWS (``header.payload.signature``) signed with the
identity's Ed25519 key using PyJWT's EdDSA algorithm::

    header  {"alg": "EdDSA", "typ": "JWT"}
    payload {"iss": ..., "iat": ..., "sub": identity_id, "claims": [...]}

Verification checks the signature only. The ``iat`` field is informational:
credentials do not expire and cannot be revoked.
"""

from __future__ import annotations

import binascii
import hmac
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import jwt
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from jwt.api_jws import PyJWS
from jwt.utils import base64url_decode

from ..core.config import get_config
from ..core.exceptions import AuthReject, RejectKind, StorageException, reject_from_storage
from .models import claims_to_list

if TYPE_CHECKING:
    from ..storage.base import Stores

logger = logging.getLogger(__name__)

ALGORITHM = "EdDSA"
SIGNATURE_LENGTH = 64
KEY_LENGTH = 32


# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------


def generate_keypair() -> tuple[str, str]:
    """Generate an Ed25519 keypair as (private_key_hex, public_key_hex)."""
    private = Ed25519PrivateKey.generate()
    public = private.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return private.private_bytes_raw().hex(), public.hex()


def load_private_key(private_key_hex: str) -> Ed25519PrivateKey:
    """Raises ValueError when the hex or the key bytes are malformed."""
    raw = bytes.fromhex(private_key_hex)
    if len(raw) != KEY_LENGTH:
        raise ValueError(f"Ed25519 private key must be {KEY_LENGTH} bytes, got {len(raw)}")
    return Ed25519PrivateKey.from_private_bytes(raw)


def load_public_key(public_key_hex: str) -> Ed25519PublicKey:
    """Raises ValueError when the hex or the key bytes are malformed."""
    raw = bytes.fromhex(public_key_hex)
    if len(raw) != KEY_LENGTH:
        raise ValueError(f"Ed25519 public key must be {KEY_LENGTH} bytes, got {len(raw)}")
    return Ed25519PublicKey.from_public_bytes(raw)


def _check_structure(credential: str) -> None:
    """Reject anything that is not three segments with a 64-byte signature."""
    segments = credential.split(".")
    if len(segments) != 3:
        raise AuthReject(
            RejectKind.DECODE_EXTERNAL,
            "credential must have exactly three segments",
            details={"segments": len(segments)},
        )
    try:
        signature = base64url_decode(segments[2])
    except (binascii.Error, ValueError) as e:
        raise AuthReject(
            RejectKind.DECODE_EXTERNAL,
            "credential signature is not valid base64url",
            details={"cause": str(e)},
        ) from e
    if len(signature) != SIGNATURE_LENGTH:
        raise AuthReject(
            RejectKind.DECODE_EXTERNAL,
            "credential signature has the wrong length",
            details={"length": len(signature)},
        )


# ---------------------------------------------------------------------------
# Verifier / issuer
# ---------------------------------------------------------------------------


class CredentialVerifier:
    """Checks that a credential was signed by the identity it is presented for."""

    def __init__(self, stores: Stores):
        self.stores = stores
        self._jws = PyJWS()

    async def verify(self, identity_id: str, credential: str) -> None:
        try:
            record = await self.stores.identities.get(identity_id)
        except StorageException as e:
            raise reject_from_storage(e, "identity does not exist") from e

        try:
            public_key = load_public_key(record.public_key)
        except ValueError as e:
            logger.error("Stored public key of %s is malformed", identity_id)
            raise AuthReject(
                RejectKind.DECODE_INTERNAL,
                "stored public key could not be decoded",
                details={"identity_id": identity_id, "cause": str(e)},
            ) from e

        _check_structure(credential)

        try:
            self._jws.decode_complete(credential, public_key, algorithms=[ALGORITHM])
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as e:
            logger.info("Credential for %s failed signature verification", identity_id)
            raise AuthReject(
                RejectKind.TAMPERED,
                "credential signature does not match",
                details={"identity_id": identity_id, "cause": str(e)},
            ) from e
        except jwt.DecodeError as e:
            raise AuthReject(
                RejectKind.DECODE_EXTERNAL,
                "credential could not be decoded",
                details={"cause": str(e)},
            ) from e


@dataclass
class IssuedCredential:
    """A fresh credential plus the public key to verify it with."""

    credential: str
    public_key: str

    def to_dict(self) -> dict[str, str]:
        return {"credential": self.credential, "public_key": self.public_key}


class CredentialIssuer:
    """Issues credentials to identities that present the right password hash.

    Args:
        stores: Record stores.
        issuer: Value of the ``iss`` field; defaults to the configured tag.
        clock: Returns the current time in seconds since the epoch.
    """

    def __init__(
        self,
        stores: Stores,
        issuer: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.stores = stores
        self.issuer = issuer if issuer is not None else get_config().credential_issuer
        self.clock = clock

    async def issue(self, identity_id: str, password_hash: str) -> IssuedCredential:
        try:
            record = await self.stores.identities.get(identity_id)
        except StorageException as e:
            raise reject_from_storage(e, "identity does not exist") from e

        if not hmac.compare_digest(record.password_hash.encode(), password_hash.encode()):
            logger.info("Login for %s rejected: password hash mismatch", identity_id)
            raise AuthReject(RejectKind.INCORRECT, "password hash does not match")

        try:
            claims = await self.stores.claims.get(identity_id)
        except StorageException as e:
            raise reject_from_storage(e, "claim list does not exist") from e

        try:
            private_key = load_private_key(record.private_key)
        except ValueError as e:
            logger.error("Stored private key of %s is malformed", identity_id)
            raise AuthReject(
                RejectKind.DECODE_INTERNAL,
                "stored private key could not be decoded",
                details={"identity_id": identity_id, "cause": str(e)},
            ) from e

        payload = {
            "iss": self.issuer,
            "iat": int(self.clock()),
            "sub": identity_id,
            "claims": claims_to_list(claims),
        }
        credential = jwt.encode(payload, private_key, algorithm=ALGORITHM)
        logger.info("Issued credential for %s with %d claims", identity_id, len(claims))
        return IssuedCredential(credential=credential, public_key=record.public_key)


def decode_payload(credential: str) -> dict:
    """Read a credential's payload without checking the signature.

    For display and debugging only; never use the result for authorization.
    """
    return jwt.decode(credential, options={"verify_signature": False})
