"""
auth/issuer.py -- Token Issuer: verified account + roles -> signed access token.

Claims:
  iss     service identity (Settings.token_issuer)
  sub     username
  upn     email
  userId  store-assigned account id
  groups  role names, sorted so equal role sets give equal claims
  iat     `now` as epoch seconds
  exp     iat + ttl

`now` is always passed in. The issuer never reads the clock, so the same
account, roles and `now` produce the same claim set. With an HMAC signer the
token string itself is identical too.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from auth.models import Account, IssuedToken
from auth.signing import SigningKeyProvider

DEFAULT_TTL_SECONDS = 3600


class TokenIssuer:
    def __init__(self, signer: SigningKeyProvider, issuer: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive.")
        self.signer = signer
        self.issuer = issuer
        self.ttl_seconds = ttl_seconds

    def build_claims(self, account: Account, role_names: Iterable[str], now: datetime) -> dict[str, Any]:
        issued_at = int(now.timestamp())
        return {
            "iss": self.issuer,
            "sub": account.username,
            "upn": account.email,
            "userId": account.id,
            "groups": sorted(set(role_names)),
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
        }

    def issue(self, account: Account, role_names: Iterable[str], now: datetime) -> IssuedToken:
        """Sign a token for `account`. Raises IssuanceFailure if signing fails."""
        claims = self.build_claims(account, role_names, now)
        token = self.signer.sign(claims)
        return IssuedToken(
            access_token=token,
            issuer=claims["iss"],
            subject=claims["sub"],
            issued_at=claims["iat"],
            expires_at=claims["exp"],
            roles=frozenset(claims["groups"]),
            account_id=account.id,
        )
