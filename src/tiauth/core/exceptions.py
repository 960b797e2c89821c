# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Custom exception hierarchy for tiauth.

Two families live here:

- Storage exceptions (``StorageException`` and friends) are raised by store
  backends. They never cross the service boundary.
- ``AuthReject`` is the single rejection type the services raise. Its ``kind``
  is one member of the closed ``RejectKind`` table, which carries the status
  code and display label for that kind.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class TiauthException(Exception):
    """Base exception for all tiauth errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# STORAGE EXCEPTIONS
# =============================================================================


class StorageException(TiauthException):
    """Exception for store backend failures.

    Raised when:
    - A database connection or query fails
    - A record file cannot be read or written
    - Stored data cannot be parsed
    """


class RecordNotFoundError(StorageException):
    """A requested record does not exist in the store."""

    def __init__(self, record_type: str, record_id: str):
        message = f"{record_type} not found: {record_id}"
        super().__init__(message, {"record_type": record_type, "record_id": record_id})
        self.record_type = record_type
        self.record_id = record_id


class RecordConflictError(StorageException):
    """A record with the same key already exists."""

    def __init__(self, record_type: str, record_id: str):
        message = f"{record_type} already exists: {record_id}"
        super().__init__(message, {"record_type": record_type, "record_id": record_id})
        self.record_type = record_type
        self.record_id = record_id


class ConfigException(TiauthException):
    """Exception for configuration errors (unknown backend, missing settings)."""

    def __init__(self, message: str, setting: str | None = None):
        details = {}
        if setting:
            details["setting"] = setting
        super().__init__(message, details)
        self.setting = setting


# =============================================================================
# REJECTIONS
# =============================================================================


class RejectKind(Enum):
    """Closed set of rejection kinds with their status code and label."""

    IO = (500, "IO Reject")
    PERMISSION = (401, "Permission Reject")
    ALREADY_EXISTS = (409, "Already Exists Reject")
    NOT_FOUND = (404, "Nonexistent Reject")
    DECODE_INTERNAL = (500, "Decode Internal Reject")
    DECODE_EXTERNAL = (400, "Decode External Reject")
    TAMPERED = (400, "Tampered Reject")
    INCORRECT = (400, "Incorrect Input Reject")
    INTERNAL = (500, "Internal Error Reject")

    def __init__(self, status_code: int, label: str):
        self.status_code = status_code
        self.label = label

    @property
    def code(self) -> str:
        """Stable machine-readable code, e.g. ``DECODE_EXTERNAL``."""
        return self.name


class AuthReject(TiauthException):
    """A request was rejected.

    Attributes:
        kind: The rejection kind.
        message: Human-readable description, always safe to show.
        public_detail: Extra text explicitly allowed to reach the caller
            (a duplicate resource id, the list of failed targets).
        details: Internal context. Logged, never returned to callers.
    """

    def __init__(
        self,
        kind: RejectKind,
        message: str,
        public_detail: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.kind = kind
        self.public_detail = public_detail

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def public_message(self) -> str:
        """Message shown to callers: label, message and whitelisted detail."""
        text = f"{self.kind.label}: {self.message}"
        if self.public_detail:
            text = f"{text} {self.public_detail}"
        return text

    def to_dict(self) -> dict:
        return {
            "error": self.__class__.__name__,
            "kind": self.kind.code,
            "message": self.message,
            "public_detail": self.public_detail,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"AuthReject({self.kind.code}, {self.message!r})"


def reject_from_storage(exc: StorageException, message: str | None = None) -> AuthReject:
    """Translate a store exception into the matching rejection.

    ``message`` replaces the default text for missing and duplicate records;
    other store failures always read "store operation failed". The store's own
    message goes into ``details`` only. For conflicts the duplicate key is
    whitelisted as public detail.
    """
    details = {"cause": exc.message, **exc.details}
    if isinstance(exc, RecordNotFoundError):
        return AuthReject(
            RejectKind.NOT_FOUND,
            message or f"{exc.record_type} does not exist",
            details=details,
        )
    if isinstance(exc, RecordConflictError):
        return AuthReject(
            RejectKind.ALREADY_EXISTS,
            message or f"{exc.record_type} already exists",
            public_detail=exc.record_id,
            details=details,
        )
    return AuthReject(RejectKind.IO, "store operation failed", details=details)
