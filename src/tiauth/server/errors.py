# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Standardized REST error responses for the tiauth API.

Every failure is rendered as:
{
    "success": false,
    "error": {
        "code": "DECODE_EXTERNAL",
        "kind": "Decode External Reject",
        "message": "Decode External Reject: credential must have exactly three segments"
    }
}

Only the rejection's message and whitelisted public detail reach the
caller. Internal details are logged.
"""

from __future__ import annotations

import logging
import uuid

from starlette.responses import JSONResponse

from ..core.exceptions import AuthReject, RejectKind
from ..core.logging import redact

logger = logging.getLogger(__name__)


def error_response(kind: RejectKind, message: str, extra: dict | None = None) -> JSONResponse:
    """Create a standardized error response for ``kind``."""
    error_body: dict = {
        "code": kind.code,
        "kind": kind.label,
        "message": message,
    }
    if extra:
        error_body.update(extra)
    return JSONResponse({"success": False, "error": error_body}, status_code=kind.status_code)


def reject_response(reject: AuthReject) -> JSONResponse:
    """Render a rejection, logging its internal details with secrets redacted."""
    details = redact(reject.details)
    if reject.kind.status_code >= 500:
        logger.error("%s: %s %s", reject.kind.code, reject.message, details)
    else:
        logger.info("%s: %s %s", reject.kind.code, reject.message, details)
    return error_response(reject.kind, reject.public_message())


def internal_error(exc: BaseException | None = None) -> JSONResponse:
    """Create a 500 response for an unexpected failure.

    The exception is logged under a request id; its text is never returned.
    """
    request_id = uuid.uuid4().hex[:12]
    if exc is not None:
        logger.error("request_id=%s %s: %s", request_id, type(exc).__name__, exc, exc_info=exc)
    return error_response(
        RejectKind.INTERNAL,
        f"{RejectKind.INTERNAL.label}: internal server error",
        extra={"request_id": request_id},
    )
