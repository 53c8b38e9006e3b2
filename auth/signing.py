"""
auth/signing.py -- Signing-key providers for access tokens.

The token issuer only knows the SigningKeyProvider protocol: hand it a claim
dict, get back a compact JWS string. Key material lives in the provider,
which is built once per process from Settings (see signer_from_settings) and
injected into TokenIssuer. Tests build their own JoseSigner with a fixed key.

JoseSigner uses python-jose. With an HS* algorithm the signature is a
deterministic HMAC, so identical claims always give byte-identical tokens.
RS*/ES* algorithms take a PEM private key instead of a shared secret.

Layer rule: may import from core/ (config) and auth/errors.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol

from jose import jwt
from jose.exceptions import JOSEError

from auth.errors import IssuanceFailure
from core.config import Settings

logger = logging.getLogger("matricula.auth.signing")


class SigningKeyProvider(Protocol):
    def sign(self, claims: dict[str, Any]) -> str: ...


class JoseSigner:
    """Sign claim sets as JWTs with a process-wide key."""

    def __init__(self, key: str, algorithm: str = "HS256") -> None:
        if not key:
            raise ValueError("Signing key must be non-empty.")
        self._key = key
        self.algorithm = algorithm

    def sign(self, claims: dict[str, Any]) -> str:
        """Return the encoded token. Raises IssuanceFailure on any signing error."""
        try:
            return jwt.encode(claims, self._key, algorithm=self.algorithm)
        except (JOSEError, ValueError, TypeError) as exc:
            # The exception text can include key details -- log the type only.
            logger.error("Token signing failed (%s, alg=%s)", type(exc).__name__, self.algorithm)
            raise IssuanceFailure("Token signing failed.", details={"algorithm": self.algorithm}) from exc

    def __repr__(self) -> str:
        return f"JoseSigner(algorithm={self.algorithm!r})"


def signer_from_settings(settings: Settings) -> JoseSigner:
    """Build the process-wide signer from configuration.

    HS* algorithms sign with SECRET_KEY; anything else reads the PEM private
    key from SIGNING_KEY_FILE. An unreadable key file raises ValueError at
    startup rather than failing on the first login.
    """
    if settings.jwt_algorithm.upper().startswith("HS"):
        return JoseSigner(settings.secret_key, settings.jwt_algorithm)
    try:
        pem = Path(settings.signing_key_file).read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read SIGNING_KEY_FILE {settings.signing_key_file!r}: {exc.strerror}") from exc
    return JoseSigner(pem, settings.jwt_algorithm)
