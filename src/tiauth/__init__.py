# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""tiauth - claim-based authorization service.

Identities register with a caller-computed password hash and get a
server-generated Ed25519 keypair. Logging in yields a signed credential
(``header.payload.signature``) embedding the identity's claims. Owners
originate resources and delegate tiered permission levels on them:

  0 owner, 1-999 admin, 1000-1999 manager, 2000-2999 moderator,
  3000-3999 writer, 4000-4999 reader, 5000 and up read-only.

CLI entry point: ``tiauth``
"""

__version__ = "0.1.0"

from . import (
    core as core,
)
