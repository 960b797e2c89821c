# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Identity registration and the public lookups clients need before login."""

from __future__ import annotations

import hmac
import logging
from typing import TYPE_CHECKING

from ..core.exceptions import AuthReject, RejectKind, StorageException, reject_from_storage
from .credentials import generate_keypair
from .models import IdentityRecord

if TYPE_CHECKING:
    from ..storage.base import Stores

logger = logging.getLogger(__name__)


class RegistrationService:
    """Creates identities and serves their salt and public key."""

    def __init__(self, stores: Stores):
        self.stores = stores

    async def register(self, identity_id: str, password_hash: str, salt: str) -> IdentityRecord:
        """Create an identity with a fresh keypair and an empty claim list.

        Raises:
            AuthReject: ALREADY_EXISTS if the id is taken, IO when a store
                write fails. No identity is left behind without a claim list.
        """
        private_key, public_key = generate_keypair()
        record = IdentityRecord(
            identity_id=identity_id,
            password_hash=password_hash,
            salt=salt,
            private_key=private_key,
            public_key=public_key,
        )
        try:
            await self.stores.identities.create(record)
        except StorageException as e:
            raise reject_from_storage(e) from e

        try:
            await self.stores.claims.put(identity_id, [])
        except StorageException as e:
            # An identity always has a claim list
            await self._discard(identity_id)
            raise reject_from_storage(e) from e

        logger.info("Registered identity %s", identity_id)
        return record

    async def _discard(self, identity_id: str) -> None:
        try:
            await self.stores.identities.delete(identity_id)
        except StorageException as e:
            logger.error("Could not remove identity %s after failed registration: %s", identity_id, e)

    async def _record(self, identity_id: str) -> IdentityRecord:
        try:
            return await self.stores.identities.get(identity_id)
        except StorageException as e:
            raise reject_from_storage(e, "identity does not exist") from e

    async def salt(self, identity_id: str) -> str:
        return (await self._record(identity_id)).salt

    async def public_key(self, identity_id: str) -> str:
        return (await self._record(identity_id)).public_key

    async def rotate_password(
        self,
        identity_id: str,
        old_hash: str,
        new_hash: str,
        new_salt: str,
    ) -> None:
        """Replace the password hash and salt. The keypair is left alone.

        Raises:
            AuthReject: NOT_FOUND for unknown ids, INCORRECT if ``old_hash``
                does not match.
        """
        record = await self._record(identity_id)
        if not hmac.compare_digest(record.password_hash.encode(), old_hash.encode()):
            raise AuthReject(RejectKind.INCORRECT, "password hash does not match")
        try:
            await self.stores.identities.update_password(identity_id, new_hash, new_salt)
        except StorageException as e:
            raise reject_from_storage(e) from e
        logger.info("Rotated password of %s", identity_id)
