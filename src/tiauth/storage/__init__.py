"""Record stores for identities, claims and resources."""

from .base import ClaimMutation, ClaimStore, IdentityStore, ResourceRegistry, Stores
from .factory import build_stores
from .files import file_stores
from .memory import memory_stores

__all__ = [
    "ClaimMutation",
    "ClaimStore",
    "IdentityStore",
    "ResourceRegistry",
    "Stores",
    "build_stores",
    "file_stores",
    "memory_stores",
]
