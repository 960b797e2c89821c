"""Fixtures for the HTTP server tests."""

from __future__ import annotations

import pytest
from starlette.testclient import TestClient

from tiauth.auth.service import AuthService
from tiauth.server.app import create_app
from tiauth.server.endpoints import set_auth_service
from tiauth.storage.memory import memory_stores


@pytest.fixture
def auth_service():
    service = AuthService(memory_stores(), issuer="test-issuer")
    set_auth_service(service)
    yield service
    set_auth_service(None)


@pytest.fixture
def client(clean_env, auth_service):
    return TestClient(create_app())
