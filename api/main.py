"""
api/main.py -- FastAPI application entry point for matricula-auth.

Exposes the credential verifier, token issuer and account provisioner over
HTTP. The auth core knows nothing about FastAPI; this module wires it up.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins

Lifespan builds the account store, the signer and the three auth services
once at startup and closes the store on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.errors import IssuanceFailure, StoreUnavailable, UsernameTaken
from auth.issuer import TokenIssuer
from auth.provisioner import AccountProvisioner
from auth.signing import signer_from_settings
from auth.store import SqlAccountStore
from auth.verifier import CredentialVerifier
from core.config import get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("matricula.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def install_services(app: FastAPI, store, signer) -> None:
    """Attach the store and the three auth services to app.state.

    Shared by the real lifespan and the test lifespan so both wire the
    services identically.
    """
    settings = get_settings()
    app.state.store = store
    app.state.verifier = CredentialVerifier(store, rounds=settings.bcrypt_rounds)
    app.state.issuer = TokenIssuer(signer, settings.token_issuer, settings.token_expire_seconds)
    app.state.provisioner = AccountProvisioner(
        store,
        rounds=settings.bcrypt_rounds,
        default_role=settings.default_role,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build services on startup, release the store's connection pool on shutdown."""
    logger.info("matricula-auth starting up")
    settings = get_settings()
    store = SqlAccountStore(settings.database_url)
    install_services(app, store, signer_from_settings(settings))
    if store.find_role_by_name(settings.default_role) is None:
        logger.warning(
            "Default role %r is not seeded; new accounts will have no roles. Run: python main.py create-role %s",
            settings.default_role,
            settings.default_role,
        )
    logger.info("Auth initialized (issuer=%s, ttl=%ds)", settings.token_issuer, settings.token_expire_seconds)

    yield

    store.close()
    logger.info("matricula-auth shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="matricula-auth",
    description="Credential verification, account registration and signed access tokens.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Logs method, path, status and latency only. Bodies are never logged --
# they carry plaintext passwords.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(
    status_code: int,
    code: str,
    message: str,
    detail: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(UsernameTaken)
async def username_taken_handler(request: Request, exc: UsernameTaken) -> JSONResponse:
    return _error(409, "conflict", "A user with that username already exists.")


@app.exception_handler(IssuanceFailure)
async def issuance_failure_handler(request: Request, exc: IssuanceFailure) -> JSONResponse:
    """Signing failed. Server-side fault; the cause is already logged by the signer."""
    return _error(500, "issuance_failed", "Could not issue an access token.")


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    logger.error("Account store unavailable on %s %s", request.method, request.url.path)
    return _error(503, "store_unavailable", "Account store is temporarily unavailable.")


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when the request body fails validation.

    exc.errors() echoes the rejected input, which can be a password. Only
    field locations and messages are returned.
    """
    detail = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
    return _error(422, "validation_error", "Request validation failed.", detail)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap routing errors (404 unknown path, 405 wrong method) in the error envelope."""
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail), headers=exc.headers)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    database = "ok" if request.app.state.store.ping() else "error"
    return HealthResponse(version=__version__, components={"app": "ok", "database": database})
