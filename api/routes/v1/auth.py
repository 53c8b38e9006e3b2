"""
api/routes/v1/auth.py -- Login and registration REST endpoints.

Routes:
  POST /api/v1/auth/token     -- password login; returns a signed access token
  POST /api/v1/auth/register  -- create a local account with the default role

Security:
  Every login failure (unknown user, wrong password, disabled account) gets
  the same 401 body. The internal kind is logged by the verifier only.
  Cache-Control: no-store on login responses, success or failure.
  Handlers are plain `def` so bcrypt runs in FastAPI's threadpool, not on the
  event loop.

Errors raised from the auth core (UsernameTaken, IssuanceFailure,
StoreUnavailable) are mapped to responses by the exception handlers in
api/main.py.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import (
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
)
from auth.issuer import TokenIssuer
from auth.provisioner import AccountProvisioner
from auth.verifier import CredentialVerifier

# Auth policy:
# - POST /api/v1/auth/token:     public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/register:  public -- self-registration
router = APIRouter()

_BAD_CREDENTIALS = ErrorResponse(
    error=ErrorDetail(code="bad_credentials", message="Invalid username or password."),
)


@router.post("/auth/token", response_model=TokenResponse)
def token(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; return a signed access token.

    Response: {accessToken, expiresAt, roles}. expiresAt is epoch seconds.
    """
    verifier: CredentialVerifier = request.app.state.verifier
    issuer: TokenIssuer = request.app.state.issuer

    result = verifier.verify(body.username, body.password)
    if not result.ok:
        resp = JSONResponse(status_code=401, content=_BAD_CREDENTIALS.model_dump())
        resp.headers["Cache-Control"] = "no-store"
        return resp

    account, roles = result.unwrap()
    issued = issuer.issue(account, roles, datetime.now(timezone.utc))
    resp = JSONResponse(
        status_code=200,
        content=TokenResponse.from_issued(issued).model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create a new active account with the default role.

    409 if the username already exists, including when a concurrent request
    wins the race between the existence check and the insert.
    """
    provisioner: AccountProvisioner = request.app.state.provisioner
    account = provisioner.register(body.username, body.password, body.email)
    return RegisterResponse(message=f"User created: {account.username}", username=account.username)
