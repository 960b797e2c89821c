"""Tests for the tiauth command line interface."""

from __future__ import annotations

import asyncio
import json
import logging
from unittest.mock import patch

import pytest

from tiauth.auth.engine import ClaimEngine
from tiauth.auth.registration import RegistrationService
from tiauth.cli.commands.identities import list_identities
from tiauth.cli.commands.io import copy_stores
from tiauth.cli.main import app, main
from tiauth.storage.files import file_stores
from tiauth.storage.memory import memory_stores

PASSWORD_HASH = "ab" * 32
SALT = "0f" * 16


@pytest.fixture(autouse=True)
def restore_root_logger():
    """main() reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


async def _populate(stores, *identity_ids: str) -> None:
    registration = RegistrationService(stores)
    for identity_id in identity_ids:
        await registration.register(identity_id, PASSWORD_HASH, SALT)
    await ClaimEngine(stores).originate(identity_ids[0], "doc", "inst-1")


# ============================================================================
# Argument parsing
# ============================================================================


class TestParser:
    def test_requires_command(self):
        with pytest.raises(SystemExit):
            app().parse_args([])

    def test_serve_options(self):
        args = app().parse_args(["serve", "--host", "127.0.0.1", "--port", "9000"])

        assert args.command == "serve"
        assert args.host == "127.0.0.1"
        assert args.port == 9000

    def test_identities_list_output(self):
        args = app().parse_args(["identities", "list", "-o", "text"])

        assert args.output == "text"

    def test_serve_runs_uvicorn(self, clean_env):
        with patch("uvicorn.run") as mock_run:
            assert main(["serve", "--port", "9000"]) == 0

        _, kwargs = mock_run.call_args
        assert mock_run.call_args.args[0] == "tiauth.server.app:app"
        assert kwargs["port"] == 9000
        assert kwargs["host"] == "0.0.0.0"


# ============================================================================
# identities list
# ============================================================================


class TestIdentitiesList:
    async def test_list_identities(self):
        stores = memory_stores()
        await _populate(stores, "bb", "aa")

        rows = await list_identities(stores)

        assert [r["identity_id"] for r in rows] == ["aa", "bb"]
        assert all(set(r) == {"identity_id", "public_key"} for r in rows)

    def test_command_reads_configured_store(self, clean_env, monkeypatch, tmp_path, capsys):
        asyncio.run(_populate(file_stores(tmp_path), "aa"))
        monkeypatch.setenv("TIAUTH_STORE_BACKEND", "files")
        monkeypatch.setenv("TIAUTH_STORE_PATH", str(tmp_path))

        assert main(["identities", "list"]) == 0

        rows = json.loads(capsys.readouterr().out)
        assert [r["identity_id"] for r in rows] == ["aa"]

    def test_unknown_backend(self, clean_env, monkeypatch, capsys):
        monkeypatch.setenv("TIAUTH_STORE_BACKEND", "mongo")

        assert main(["identities", "list"]) == 1
        assert "Unknown store backend" in capsys.readouterr().err


# ============================================================================
# import-files
# ============================================================================


class TestImportFiles:
    async def test_copy_stores(self, tmp_path):
        source = file_stores(tmp_path)
        await _populate(source, "aa", "bb")
        target = memory_stores()

        report = await copy_stores(source, target)

        assert report.to_dict() == {"identities": 2, "resources": 1, "claim_lists": 2, "skipped": 0}
        assert await target.identities.list_ids() == ["aa", "bb"]
        assert await target.resources.list_uris() == ["aa--doc"]
        assert [c.permission for c in await target.claims.get("aa")] == [0]
        assert await target.claims.get("bb") == []

    async def test_existing_records_skipped(self, tmp_path):
        source = file_stores(tmp_path)
        await _populate(source, "aa", "bb")
        target = memory_stores()
        await _populate(target, "aa")

        report = await copy_stores(source, target)

        assert report.identities == 1
        assert report.skipped == 2
        assert report.claim_lists == 1

    def test_command(self, clean_env, monkeypatch, tmp_path, capsys):
        source_dir = tmp_path / "source"
        asyncio.run(_populate(file_stores(source_dir), "aa"))
        monkeypatch.setenv("TIAUTH_STORE_BACKEND", "files")
        monkeypatch.setenv("TIAUTH_STORE_PATH", str(tmp_path / "target"))

        assert main(["import-files", str(source_dir)]) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["identities"] == 1

    def test_missing_directory(self, clean_env, tmp_path, capsys):
        assert main(["import-files", str(tmp_path / "nope")]) == 1
        assert "Not a directory" in capsys.readouterr().err


# ============================================================================
# schema init
# ============================================================================


class TestSchemaInit:
    def test_creates_tables(self, clean_env, mock_psycopg2_pool, capsys):
        assert main(["schema", "init"]) == 0

        executed = " ".join(c.args[0] for c in mock_psycopg2_pool["cursor"].execute.call_args_list)
        assert "CREATE TABLE IF NOT EXISTS identities" in executed
        assert "CREATE TABLE IF NOT EXISTS claims" in executed
        assert mock_psycopg2_pool["connection"].commit.called
        assert "Schema initialized." in capsys.readouterr().out
