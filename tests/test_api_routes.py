"""
tests/test_api_routes.py -- Integration tests for the login and register routes.

These tests exercise the full stack: FastAPI routing -> app.state services ->
SqlAccountStore -> response model serialization -> exception handlers.

Coverage:
  - Register 201 with default role, then 409 on duplicate
  - Login 200 with {accessToken, expiresAt, roles}, expiresAt = iat + 3600
  - Wrong password and unknown user both 401 with an identical body
  - Cache-Control: no-store on login responses
  - 422 on empty fields without echoing the password
  - 500 on signing failure, 503 when the store is down
  - 404/405 routing errors in the same error envelope

Fixtures used (from conftest.py):
  - api_client: TestClient wired to an isolated store with "user" seeded
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from jose import jwt

from api.main import app
from auth.errors import StoreUnavailable
from auth.signing import JoseSigner

TOKEN_URL = "/api/v1/auth/token"
REGISTER_URL = "/api/v1/auth/register"
ANA = {"username": "ana", "password": "Secreta1", "email": "ana@x.com"}


def _register(client: TestClient, body: dict = ANA):
    return client.post(REGISTER_URL, json=body)


class TestRegisterLoginScenario:
    """register ana -> login ok -> login wrong password -> register ana again."""

    def test_full_scenario(self, api_client: TestClient, signing_key: str) -> None:
        resp = _register(api_client)
        assert resp.status_code == 201, resp.text
        assert resp.json() == {"message": "User created: ana", "username": "ana"}

        resp = api_client.post(TOKEN_URL, json={"username": "ana", "password": "Secreta1"})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert set(data) == {"accessToken", "expiresAt", "roles"}
        assert data["roles"] == ["user"]
        claims = jwt.decode(data["accessToken"], signing_key, algorithms=["HS256"])
        assert data["expiresAt"] == claims["exp"] == claims["iat"] + 3600
        assert claims["sub"] == "ana"
        assert claims["upn"] == "ana@x.com"
        assert claims["groups"] == ["user"]
        assert claims["iss"] == "matricula-auth"
        assert isinstance(claims["userId"], int)

        resp = api_client.post(TOKEN_URL, json={"username": "ana", "password": "wrong"})
        assert resp.status_code == 401

        resp = _register(api_client, {"username": "ana", "password": "x", "email": "y@x.com"})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"


class TestLoginFailures:
    def test_wrong_password_and_unknown_user_look_identical(self, api_client: TestClient) -> None:
        _register(api_client)
        wrong_pw = api_client.post(TOKEN_URL, json={"username": "ana", "password": "nope"})
        unknown = api_client.post(TOKEN_URL, json={"username": "ghost", "password": "nope"})
        assert wrong_pw.status_code == unknown.status_code == 401
        assert wrong_pw.json() == unknown.json()
        assert wrong_pw.json()["error"]["code"] == "bad_credentials"

    def test_login_responses_are_not_cached(self, api_client: TestClient) -> None:
        _register(api_client)
        ok = api_client.post(TOKEN_URL, json={"username": "ana", "password": "Secreta1"})
        bad = api_client.post(TOKEN_URL, json={"username": "ana", "password": "nope"})
        assert ok.headers["cache-control"] == "no-store"
        assert bad.headers["cache-control"] == "no-store"

    def test_empty_fields_rejected_without_echo(self, api_client: TestClient) -> None:
        resp = api_client.post(TOKEN_URL, json={"username": "", "password": "Secret-do-not-echo"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"
        assert "Secret-do-not-echo" not in resp.text

    def test_register_requires_email(self, api_client: TestClient) -> None:
        resp = api_client.post(REGISTER_URL, json={"username": "ana", "password": "Secreta1"})
        assert resp.status_code == 422


class TestServerFaults:
    def test_signing_failure_is_500(self, api_client: TestClient, monkeypatch) -> None:
        _register(api_client)
        monkeypatch.setattr(app.state.issuer, "signer", JoseSigner("irrelevant-key", "NOPE512"))
        resp = api_client.post(TOKEN_URL, json={"username": "ana", "password": "Secreta1"})
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "issuance_failed"

    def test_store_down_is_503(self, api_client: TestClient, monkeypatch) -> None:
        def _down(username):
            raise StoreUnavailable("find_by_username: account store unavailable.")

        monkeypatch.setattr(app.state.store, "find_by_username", _down)
        resp = api_client.post(TOKEN_URL, json={"username": "ana", "password": "Secreta1"})
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "store_unavailable"


class TestRegisterWithoutDefaultRole:
    def test_account_created_with_no_roles(self, api_client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(app.state.provisioner, "default_role", "missing-role")
        assert _register(api_client).status_code == 201
        resp = api_client.post(TOKEN_URL, json={"username": "ana", "password": "Secreta1"})
        assert resp.status_code == 200
        assert resp.json()["roles"] == []


class TestServiceWiring:
    def test_dummy_hash_uses_configured_cost(self, api_client: TestClient) -> None:
        # BCRYPT_ROUNDS=4 in the test environment.
        assert app.state.verifier.dummy_hash.startswith("$2b$04$")


class TestRoutingErrors:
    def test_unknown_path_uses_error_envelope(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/v1/nope")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "http_404"

    def test_wrong_method_uses_error_envelope(self, api_client: TestClient) -> None:
        resp = api_client.get(TOKEN_URL)
        assert resp.status_code == 405
        assert resp.json()["error"]["code"] == "http_405"
        assert "POST" in resp.headers["allow"]
