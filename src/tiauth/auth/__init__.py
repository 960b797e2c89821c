"""Credentials, claims and the authorization engine."""

from .credentials import CredentialIssuer, CredentialVerifier, IssuedCredential
from .engine import ClaimEngine
from .models import (
    Claim,
    DelegationResult,
    DelegationTarget,
    IdentityRecord,
    PermissionTier,
    ResourceURI,
    TargetFailure,
)
from .registration import RegistrationService
from .service import AuthService

__all__ = [
    "AuthService",
    "Claim",
    "ClaimEngine",
    "CredentialIssuer",
    "CredentialVerifier",
    "DelegationResult",
    "DelegationTarget",
    "IdentityRecord",
    "IssuedCredential",
    "PermissionTier",
    "RegistrationService",
    "ResourceURI",
    "TargetFailure",
]
