"""
auth/errors.py -- Typed failures for the credential and token flows.

Every failure the core can produce has a class here so callers (the API layer,
the CLI, tests) can branch on the type instead of parsing messages.

  Unauthorized        -- any login failure. The three subclasses keep the
                         internal reason for logs and tests; the API layer
                         renders all of them with the same 401 body.
  UsernameTaken       -- registration conflict (409).
  IssuanceFailure     -- token could not be signed (500, never retried).
  StoreError          -- raised by AccountStore implementations.
    StoreUnavailable  -- database unreachable (503).
    StoreConflict     -- unique constraint violated during insert.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base exception for all matricula-auth errors."""

    def __init__(self, message: str, *, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class Unauthorized(AuthError):
    """Credentials were rejected."""

    # Machine-readable reason; only ever written to logs, never to responses.
    kind = "unauthorized"


class AccountNotFound(Unauthorized):
    kind = "account_not_found"

    def __init__(self, username: str) -> None:
        super().__init__("Account not found.", details={"username": username})


class BadPassword(Unauthorized):
    kind = "bad_password"

    def __init__(self, username: str) -> None:
        super().__init__("Incorrect password.", details={"username": username})


class AccountInactive(Unauthorized):
    kind = "account_inactive"

    def __init__(self, username: str) -> None:
        super().__init__("Account is disabled.", details={"username": username})


class UsernameTaken(AuthError):
    """Raised when registering a username that already exists."""

    def __init__(self, username: str) -> None:
        super().__init__(f"Username already exists: {username}", details={"username": username})
        self.username = username


class IssuanceFailure(AuthError):
    """Raised when the signing provider cannot produce a token."""


class StoreError(AuthError):
    """Base for failures reported by an AccountStore."""


class StoreUnavailable(StoreError):
    """The backing database could not be reached or the query failed."""


class StoreConflict(StoreError):
    """An insert violated a uniqueness constraint."""
