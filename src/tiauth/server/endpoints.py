# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""REST endpoints.

Implements (all under /api/v1):
- POST /register - Register an identity
- GET /user_salt - Salt of an identity
- GET /user_verify - Public key of an identity
- POST /login - Exchange a password hash for a credential
- POST /new_claim - Originate a resource
- POST /modify_claims - Delegate claim levels to targets
- GET /alive - Liveness probe
"""

from __future__ import annotations

import functools
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from ..auth.models import ResourceURI
from ..auth.requests import (
    DelegateRequest,
    IdentityQuery,
    LoginRequest,
    OriginateRequest,
    RegisterRequest,
    parse_request,
)
from ..auth.service import AuthService
from ..core.exceptions import AuthReject, RejectKind
from .config import get_settings
from .errors import internal_error, reject_response

logger = logging.getLogger(__name__)

Endpoint = Callable[[Request], Awaitable[Response]]

# Global service instance (initialized in app startup)
_auth_service: AuthService | None = None


def get_auth_service() -> AuthService | None:
    """Get the auth service instance."""
    return _auth_service


def set_auth_service(service: AuthService | None) -> None:
    """Set the auth service instance."""
    global _auth_service
    _auth_service = service


def _service() -> AuthService:
    service = get_auth_service()
    if service is None:
        raise RuntimeError("Auth service not initialized")
    return service


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise AuthReject(RejectKind.INCORRECT, "invalid JSON body", details={"cause": str(e)}) from e


def rejects_to_responses(endpoint: Endpoint) -> Endpoint:
    """Render AuthReject as its error response and anything else as a 500."""

    @functools.wraps(endpoint)
    async def wrapper(request: Request) -> Response:
        try:
            return await endpoint(request)
        except AuthReject as e:
            return reject_response(e)
        except Exception as e:
            return internal_error(e)

    return wrapper


@rejects_to_responses
async def register_endpoint(request: Request) -> Response:
    """POST /api/v1/register

    Request Body (JSON):
        {"identity_id": "ab-cd", "password_hash": "<64 hex>", "salt": "<32 hex>"}

    Returns:
        201: identity_id and the generated public key
        400: Invalid request
        409: Identity already exists
    """
    req = parse_request(RegisterRequest, await _json_body(request))
    record = await _service().register(req.identity_id, req.password_hash, req.salt)
    return JSONResponse(
        {"success": True, "identity_id": record.identity_id, "public_key": record.public_key},
        status_code=201,
    )


@rejects_to_responses
async def user_salt_endpoint(request: Request) -> Response:
    """GET /api/v1/user_salt?identity_id=..."""
    req = parse_request(IdentityQuery, dict(request.query_params))
    salt = await _service().salt(req.identity_id)
    return JSONResponse({"success": True, "salt": salt})


@rejects_to_responses
async def user_verify_endpoint(request: Request) -> Response:
    """GET /api/v1/user_verify?identity_id=...

    Returns the identity's public key so clients can verify its credentials.
    """
    req = parse_request(IdentityQuery, dict(request.query_params))
    public_key = await _service().public_key(req.identity_id)
    return JSONResponse({"success": True, "public_key": public_key})


@rejects_to_responses
async def login_endpoint(request: Request) -> Response:
    """POST /api/v1/login

    Request Body (JSON):
        {"identity_id": "ab-cd", "password_hash": "<64 hex>"}

    Returns:
        200: credential and public key
        400: Incorrect password hash
        404: Unknown identity
    """
    req = parse_request(LoginRequest, await _json_body(request))
    issued = await _service().login(req.identity_id, req.password_hash)
    return JSONResponse({"success": True, **issued.to_dict()})


@rejects_to_responses
async def new_claim_endpoint(request: Request) -> Response:
    """POST /api/v1/new_claim - Originate a resource.

    Request Body (JSON):
        {"identity_id": "...", "local_id": "...", "instance_id": "...", "credential": "..."}

    Returns:
        201: the resource URI
        400: Invalid request or credential
        409: Resource already exists
    """
    req = parse_request(OriginateRequest, await _json_body(request))
    resource = await _service().originate(req.identity_id, req.credential, req.local_id, req.instance_id)
    return JSONResponse({"success": True, "resource": str(resource)}, status_code=201)


@rejects_to_responses
async def modify_claims_endpoint(request: Request) -> Response:
    """POST /api/v1/modify_claims - Delegate claim levels.

    Request Body (JSON):
        {
            "writer": "...",
            "origin": "...",
            "local_id": "...",
            "instance_id": "...",
            "targets": [{"identity_id": "...", "permission": 4500}],
            "credential": "..."
        }

    Returns:
        200: succeeded targets and any invalid targets with reasons
        400: Invalid request, or every target failed
        401: Writer may not modify claims
        404: Writer holds no claim on the resource
    """
    req = parse_request(DelegateRequest, await _json_body(request))
    try:
        resource = ResourceURI(origin=req.origin, local_id=req.local_id)
    except ValueError as e:
        raise AuthReject(RejectKind.INCORRECT, "invalid resource", details={"cause": str(e)}) from e
    result = await _service().delegate(
        req.writer,
        req.credential,
        resource,
        req.instance_id,
        [t.to_target() for t in req.targets],
    )
    return JSONResponse({"success": True, **result.to_dict()})


async def alive_endpoint(request: Request) -> JSONResponse:
    """GET /api/v1/alive - Liveness probe."""
    settings = get_settings()
    return JSONResponse({"status": "alive", "version": settings.server_version})


async def root_endpoint(request: Request) -> RedirectResponse:
    """GET / - Redirect to the project homepage."""
    return RedirectResponse(get_settings().homepage_url)
