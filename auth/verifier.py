"""
auth/verifier.py -- Credential Verifier: username/password -> account + roles.

Returns a VerificationResult instead of raising, so the route layer handles
every outcome in one place. The internal failure kind (not found, bad
password, inactive) is kept on the result for logs and tests; the API layer
renders all of them as the same 401.

Timing equalization:
  bcrypt runs whether or not the username exists. Unknown usernames are
  checked against a dummy hash at the configured bcrypt cost so an
  attacker cannot enumerate accounts by measuring response time.

Plaintext passwords are never logged, and neither are hashes.
"""

from __future__ import annotations

import logging

from auth.errors import AccountInactive, AccountNotFound, BadPassword, Unauthorized
from auth.hashing import DEFAULT_ROUNDS, dummy_hash, verify_password
from auth.models import VerificationResult
from auth.store import AccountStore

logger = logging.getLogger("matricula.auth.verifier")


class CredentialVerifier:
    def __init__(self, store: AccountStore, rounds: int = DEFAULT_ROUNDS) -> None:
        self.store = store
        # Same cost as the hashes the provisioner writes.
        self.dummy_hash = dummy_hash(rounds)

    def verify(self, username: str, password: str) -> VerificationResult:
        """Check a username/password pair against the stored bcrypt hash.

        StoreUnavailable from the store propagates unchanged.
        """
        account = self.store.find_by_username(username)
        if account is None:
            # Do NOT return before running bcrypt.
            verify_password(password, self.dummy_hash)
            return self._fail(AccountNotFound(username))

        if not verify_password(password, account.password_hash):
            return self._fail(BadPassword(username))

        if not account.is_active:
            return self._fail(AccountInactive(username))

        return VerificationResult.success(account, account.role_names())

    @staticmethod
    def _fail(failure: Unauthorized) -> VerificationResult:
        logger.info("Login rejected (%s) for %r", failure.kind, failure.details.get("username"))
        return VerificationResult.failed(failure)
