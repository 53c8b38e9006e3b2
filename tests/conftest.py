"""
tests/conftest.py -- Shared test fixtures for matricula-auth.

This module provides:
  - fake_store: a fresh tests.fakes.FakeAccountStore ("user" role seeded)
  - sql_store: a fresh SqlAccountStore ("user" role seeded)
  - signer / issuer: a JoseSigner with a fixed HMAC key
  - api_client: TestClient with a patched lifespan wired to an isolated store

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for
the API client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

DEBUG and BCRYPT_ROUNDS must be set before any auth/core import:
get_settings() then auto-generates SECRET_KEY instead of raising, and
bcrypt runs at the minimum cost so the suite stays fast.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app, install_services
from auth.issuer import TokenIssuer
from auth.signing import JoseSigner
from auth.store import SqlAccountStore
from tests.fakes import FakeAccountStore


TEST_SIGNING_KEY = "test-signing-key-0123456789abcdef0123456789abcdef"


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_store() -> FakeAccountStore:
    return FakeAccountStore()


@pytest.fixture
def sql_store() -> Generator[SqlAccountStore, None, None]:
    """Isolated shared-memory SqlAccountStore with the "user" role seeded."""
    store = SqlAccountStore(f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    store.create_role("user")
    yield store
    store.close()


# ---------------------------------------------------------------------------
# Signing fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def signing_key() -> str:
    return TEST_SIGNING_KEY


@pytest.fixture
def signer(signing_key: str) -> JoseSigner:
    return JoseSigner(signing_key, "HS256")


@pytest.fixture
def issuer(signer: JoseSigner) -> TokenIssuer:
    return TokenIssuer(signer, issuer="matricula-auth", ttl_seconds=3600)


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


def _patch_lifespan(store: SqlAccountStore, signer: JoseSigner):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store and fixed-key signer into app.state so routes see an
    isolated database rather than the configured one.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        install_services(app, store, signer)
        yield

    return test_lifespan


@pytest.fixture
def api_client(sql_store: SqlAccountStore, signer: JoseSigner) -> Generator[TestClient, None, None]:
    """TestClient hitting the real routes and handlers with an isolated store."""
    app.router.lifespan_context = _patch_lifespan(sql_store, signer)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
